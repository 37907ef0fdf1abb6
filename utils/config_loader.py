"""Configuration loader that reads from .env and validates with Pydantic."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv
from pydantic import ValidationError

from models.config_models import Config, CredentialsConfig, GridConfig


def _grid_settings_from_env() -> dict:
    """Collect BUG_GRID_* overrides; unset variables keep the model defaults."""
    env_map = {
        "mode": "BUG_GRID_MODE",
        "api_base_url": "BUG_API_URL",
        "page_size": "BUG_GRID_PAGE_SIZE",
        "debounce_ms": "BUG_GRID_DEBOUNCE_MS",
        "row_height": "BUG_GRID_ROW_HEIGHT",
        "overscan": "BUG_GRID_OVERSCAN",
        "settings_path": "BUG_GRID_SETTINGS_PATH",
        "request_timeout": "BUG_GRID_REQUEST_TIMEOUT",
    }
    settings = {}
    for field_name, env_var in env_map.items():
        value = os.getenv(env_var)
        if value:
            settings[field_name] = value
    return settings


def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Reads from .env file in the project root and validates all required
    credentials and grid settings using Pydantic models.

    Returns:
        Config: Validated configuration object

    Raises:
        SystemExit: If configuration is invalid or missing required fields
    """
    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    try:
        config = Config(
            credentials=CredentialsConfig(
                supabase_url=os.getenv("SUPABASE_URL", ""),
                supabase_key=os.getenv("SUPABASE_KEY", ""),
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
                openai_api_key=os.getenv("OPENAI_API_KEY"),
                llm_provider=os.getenv("LLM_PROVIDER", "openai"),
                llm_model=os.getenv("LLM_MODEL", "gpt-4o"),
            ),
            grid=GridConfig(**_grid_settings_from_env()),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        return config

    except ValidationError as e:
        print("❌ Configuration validation failed:", file=sys.stderr)
        print("\nPlease check your .env file. Missing or invalid fields:", file=sys.stderr)

        for error in e.errors():
            field_path = " → ".join(str(x) for x in error["loc"])
            message = error["msg"]
            print(f"  • {field_path}: {message}", file=sys.stderr)

        print("\nHint: Copy .env.example to .env and fill in your credentials.", file=sys.stderr)
        sys.exit(1)
