#!/usr/bin/env python3
"""
Backend Server Entry Point

Simple uvicorn launcher for the Bug Grid API.
Can be run directly or imported.

Usage:
    # Development mode with auto-reload
    python backend/server.py

    # Custom host/port
    python backend/server.py --host 0.0.0.0 --port 8080

    # Production mode (no reload)
    python backend/server.py --no-reload

    # Or use uvicorn directly
    uvicorn backend.app:app --reload
"""

import argparse

import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bug Grid API Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Development mode (auto-reload enabled)
  python backend/server.py

  # Custom host/port
  python backend/server.py --host 0.0.0.0 --port 8080

  # Production mode (no reload)
  python backend/server.py --no-reload
        """
    )

    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the API server on (default: 8000)"
    )
    parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload (use for production)"
    )
    return parser


def main(argv=None):
    """Launch the FastAPI backend server."""
    args = build_parser().parse_args(argv)

    print("=" * 80)
    print("Bug Grid API Server")
    print("=" * 80)
    print(f"Bug list endpoint: http://{args.host}:{args.port}/api/bugs")
    print(f"API docs available at: http://{args.host}:{args.port}/docs")
    print("")
    print("Point the grid at this server with BUG_API_URL in .env")
    print("Press Ctrl+C to stop the server")
    print("=" * 80)
    print("")

    uvicorn.run(
        "backend.app:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level="info"
    )


if __name__ == "__main__":
    main()
