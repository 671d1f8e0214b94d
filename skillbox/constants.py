"""Global constants for the Skillbox plugin service."""

import os
from pathlib import Path

# Directory paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _project_path(value: str) -> Path:
    """Resolve relative paths against the project root."""
    path = Path(value)
    return path if path.is_absolute() else (PROJECT_ROOT / path).resolve()


BUNDLED_PLUGINS_DIR = _project_path(os.getenv("SKILLBOX_PLUGINS_DIR", "plugins/bundled"))
INSTALLED_PLUGINS_DIR = _project_path(os.getenv("SKILLBOX_INSTALLED_PLUGINS_DIR", "plugins/installed"))
PLUGIN_STATE_FILE = _project_path(os.getenv("SKILLBOX_PLUGIN_STATE_FILE", "plugins/config.json"))

# Extra plugin definition directories, colon separated
EXTRA_PLUGIN_PATHS = [
    _project_path(p.strip()) for p in os.getenv("PLUGIN_PATHS", "").split(":") if p.strip()
]

# Per-request timeout for plugin HTTP calls (seconds), unless the plugin config sets `timeout`
PLUGIN_DEFAULT_TIMEOUT = float(os.getenv("PLUGIN_DEFAULT_TIMEOUT", "30"))

# Server
PORT = int(os.getenv("PORT", "9090"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Header carrying the authenticated user id, set by the upstream auth middleware
USER_ID_HEADER = "X-User-Id"

# Sample message for GET /api/plugin-execution/test
TEST_MESSAGE = "Generate an image of a sunset over mountains"
