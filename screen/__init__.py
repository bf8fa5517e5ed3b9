"""
Screen package — frontmost-app detection and the foreground event channel.
"""

from screen.foreground import ForegroundDetector
from screen.watcher import ForegroundEvent, ForegroundWatcher, PollingForegroundSource

__all__ = ["ForegroundDetector", "ForegroundEvent", "ForegroundWatcher", "PollingForegroundSource"]
