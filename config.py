"""Configuration settings for str00py."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (locked apps, settings, stats).

    For development: Same as project_root/data
    For bundled apps: Uses a dedicated folder in the user's home directory
                      to persist data across updates.

    Returns:
        Path to the user data directory.
    """
    if is_bundled():
        if sys.platform == 'darwin':
            # macOS: ~/Library/Application Support/str00py
            data_dir = Path.home() / "Library" / "Application Support" / "str00py"
        elif sys.platform == 'win32':
            # Windows: %APPDATA%/str00py
            appdata = os.environ.get('APPDATA')
            if appdata:
                data_dir = Path(appdata) / "str00py"
            else:
                data_dir = Path.home() / "AppData" / "Roaming" / "str00py"
        else:
            # Linux: ~/.local/share/str00py
            data_dir = Path.home() / ".local" / "share" / "str00py"

        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            data_dir = Path.home() / ".str00py"
            data_dir.mkdir(parents=True, exist_ok=True)

        return data_dir
    else:
        # Development mode
        return Path(__file__).parent / "data"


def _get_float(env_var: str, default: float) -> float:
    """
    Read a positive float from the environment, falling back on bad values.

    Args:
        env_var: Environment variable name.
        default: Value used when the variable is unset or invalid.

    Returns:
        Parsed value or the default.
    """
    raw = os.getenv(env_var, "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        import logging
        logging.getLogger(__name__).warning(
            f"{env_var}={raw!r} is not a number, using default {default}"
        )
        return default
    if value <= 0:
        import logging
        logging.getLogger(__name__).warning(
            f"{env_var} must be positive, using default {default}"
        )
        return default
    return value


# Load environment variables from .env file (only in development)
if not is_bundled():
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)

# User data directory (for writable data like locked apps and settings)
_data_dir_override = os.getenv("STROOPY_DATA_DIR", "")
USER_DATA_DIR = Path(_data_dir_override) if _data_dir_override else get_user_data_dir()

# Persistence
LOCKED_APPS_FILE = USER_DATA_DIR / "locked_apps.json"
SETTINGS_FILE = USER_DATA_DIR / "settings.json"
STATS_FILE = USER_DATA_DIR / "challenge_stats.json"
INSTANCE_LOCK_FILE = USER_DATA_DIR / ".str00py_instance.lock"

# Challenge lifecycle
# A challenge left unanswered longer than this is treated as failed
CHALLENGE_TIMEOUT_SECONDS = _get_float("STROOPY_CHALLENGE_TIMEOUT", 30.0)
# How often the watcher checks for stale challenges when no events arrive
TIMEOUT_SWEEP_INTERVAL = 1.0

# Foreground monitoring
FOREGROUND_POLL_INTERVAL = _get_float("STROOPY_POLL_INTERVAL", 0.5)

# Our own identifier; events for it are the challenge screen itself
OWN_PACKAGE = "com.example.strooplocker"

# Overlays and shells that briefly take the foreground without being a real app switch
IGNORED_PACKAGES = frozenset({
    OWN_PACKAGE,
    "com.android.systemui",
    "com.apple.notificationcenterui",
    "com.apple.controlcenter",
    "ShellExperienceHost",
})

# Decisions returned for foreground events
DECISION_ALLOW = "allow"
DECISION_CHALLENGE = "challenge"
DECISION_PENDING = "pending"
DECISION_DENY = "deny"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Ensure user data directory exists
try:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
except Exception as e:
    import logging
    logging.getLogger(__name__).error(f"Failed to create data directory {USER_DATA_DIR}: {e}")
