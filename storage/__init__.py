"""
Storage package — file-backed persistence for locked apps and settings.
"""

from storage.locked_apps import LockedAppStore
from storage.settings import SettingsManager

__all__ = ["LockedAppStore", "SettingsManager"]
