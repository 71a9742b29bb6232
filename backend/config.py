"""
Service configuration.

Settings come from environment variables; engine constants (history size,
layout spacing bounds) are fixed in the `netdiagram` package.
"""
import logging
import os
from pathlib import Path
from typing import Optional


HOST = os.environ.get("NETDIAGRAM_HOST", "127.0.0.1")
PORT = int(os.environ.get("NETDIAGRAM_PORT", "8765"))

LOG_LEVEL = os.environ.get("NETDIAGRAM_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.environ.get("NETDIAGRAM_LOG_FILE") or None

# Default directory for listing and saving diagram files
DIAGRAM_DIR = Path(os.path.expanduser(
    os.environ.get("NETDIAGRAM_DIAGRAM_DIR", "~/diagrams")
))

# CORS for local frontend development
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "NETDIAGRAM_CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]


def setup_logging(level: int | str = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Set up logging with a console handler and optionally a file handler.

    Args:
        level: Logging level (e.g., logging.INFO or "DEBUG").
        log_file: Optional path to a file for logging output.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers to avoid duplicates
    if root.hasHandlers():
        root.handlers.clear()

    formatter = logging.Formatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
