"""
FastAPI application for the bug grid.

Serves the bug list API that the grid queries in server mode, plus stats,
CSV export and the AI bug chat.
"""

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routes import router
from utils.logger import setup_logger

logger = setup_logger(os.getenv("LOG_LEVEL", "INFO"))

# Create FastAPI app
app = FastAPI(
    title="Bug Grid API",
    description="REST API for searching, filtering and paging bug reports stored in Supabase",
    version="1.0.0"
)

# Enable CORS for local development
# This allows the grid frontend (running on port 5173) to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],  # Vite dev server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

logger.info("FastAPI app initialized")
