"""
Runtime settings, read from the environment.

WORKFLOW_STORAGE_PATH  JSON file backing the record store (unset: memory only)
INVITE_BASE_URL        Base URL used to build registration invite links
LOG_LEVEL              Loguru level for the stderr sink
LOG_JSON               "true" for JSON-lines log output
"""

import os
from typing import Optional

DEFAULT_INVITE_BASE_URL = "http://localhost:8000"


def get_storage_path() -> Optional[str]:
    """Path of the JSON store file, or None for in-memory storage."""
    return os.environ.get("WORKFLOW_STORAGE_PATH") or None


def get_invite_base_url() -> str:
    return os.environ.get("INVITE_BASE_URL", DEFAULT_INVITE_BASE_URL)


def get_log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def use_json_logs() -> bool:
    return os.environ.get("LOG_JSON", "false").lower() == "true"
