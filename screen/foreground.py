"""
Frontmost application detection.

Reports a stable identifier for the application currently in the
foreground:
- macOS: bundle identifier (e.g. "com.apple.Safari") via AppleScript
- Windows: executable name without ".exe" (e.g. "Discord") via ctypes

Other platforms are not supported; events can still be fed to the watcher
directly by another source.
"""

import sys
import subprocess
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# AppleScript returning "<bundle id>|||<display name>" for the frontmost app
_MACOS_FRONTMOST_SCRIPT = '''
tell application "System Events"
    set frontApp to first application process whose frontmost is true
    set bundleId to ""
    try
        set bundleId to bundle identifier of frontApp
    end try
    return bundleId & "|||" & (name of frontApp)
end tell
'''


def _applescript_escape(value: str) -> str:
    """Escape a value for use inside an AppleScript string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


class ForegroundDetector:
    """
    Cross-platform detector for the frontmost application's identifier.
    """

    def __init__(self):
        """Initialize the detector for the current platform."""
        self.platform = sys.platform
        self._permission_checked = False
        self._has_permission = False

    def get_foreground_package(self) -> Optional[str]:
        """
        Get the identifier of the frontmost application.

        Returns:
            Package/bundle identifier, or None if detection fails.
        """
        try:
            if self.platform == "darwin":
                return self._get_foreground_macos()
            elif self.platform == "win32":
                return self._get_foreground_windows()
            else:
                logger.warning(f"Unsupported platform: {self.platform}")
                return None
        except PermissionError as e:
            logger.warning(f"Permission denied getting foreground app: {e}")
            self._has_permission = False
            return None
        except subprocess.TimeoutExpired as e:
            logger.warning(f"Timeout getting foreground app: {e}")
            return None
        except OSError as e:
            logger.error(f"OS error getting foreground app: {e}")
            return None

    def _get_foreground_macos(self) -> Optional[str]:
        """
        Get the frontmost app's bundle identifier on macOS.

        Falls back to the process name for apps without a bundle id.
        """
        result = subprocess.run(
            ["osascript", "-e", _MACOS_FRONTMOST_SCRIPT],
            capture_output=True,
            text=True,
            timeout=2
        )

        if result.returncode != 0:
            logger.warning(f"AppleScript failed with code {result.returncode}: {result.stderr.strip()}")
            stderr_lower = result.stderr.lower()
            if "not allowed" in stderr_lower or "assistive" in stderr_lower or "-10827" in stderr_lower:
                logger.warning("Accessibility permission required for foreground monitoring")
            self._has_permission = False
            return None

        self._has_permission = True
        output = result.stdout.strip()

        if "|||" in output:
            bundle_id, app_name = output.split("|||", 1)
        else:
            bundle_id, app_name = "", output

        return bundle_id.strip() or app_name.strip() or None

    def _get_foreground_windows(self) -> Optional[str]:
        """
        Get the frontmost app's executable name on Windows using ctypes.
        """
        import ctypes
        from ctypes import wintypes

        user32 = ctypes.windll.user32
        hwnd = user32.GetForegroundWindow()
        if not hwnd:
            return None

        pid = wintypes.DWORD()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        self._has_permission = True
        return self._get_process_name_windows(pid.value)

    def _get_process_name_windows(self, pid: int) -> Optional[str]:
        """
        Get process name from PID on Windows.

        Args:
            pid: Process ID

        Returns:
            Executable name without extension, or None
        """
        import ctypes
        from ctypes import wintypes

        PROCESS_QUERY_LIMITED_INFORMATION = 0x1000

        kernel32 = ctypes.windll.kernel32
        handle = kernel32.OpenProcess(PROCESS_QUERY_LIMITED_INFORMATION, False, pid)
        if not handle:
            return None

        try:
            buffer = ctypes.create_unicode_buffer(260)
            size = wintypes.DWORD(260)
            if kernel32.QueryFullProcessImageNameW(handle, 0, buffer, ctypes.byref(size)):
                name = buffer.value.split("\\")[-1]
                if name.lower().endswith(".exe"):
                    name = name[:-4]
                return name or None
            return None
        finally:
            kernel32.CloseHandle(handle)

    def hide_package(self, package_name: str) -> bool:
        """
        Send a denied app to the background.

        macOS hides the app by bundle identifier; Windows minimizes the
        foreground window if it belongs to package_name.

        Returns:
            True if the host accepted the request.
        """
        try:
            if self.platform == "darwin":
                script = (
                    'tell application "System Events" to set visible of '
                    '(first application process whose bundle identifier is '
                    f'"{_applescript_escape(package_name)}") to false'
                )
                result = subprocess.run(
                    ["osascript", "-e", script],
                    capture_output=True,
                    text=True,
                    timeout=2
                )
                if result.returncode != 0:
                    logger.warning(f"Could not hide {package_name}: {result.stderr.strip()}")
                    return False
                return True
            elif self.platform == "win32":
                import ctypes
                SW_MINIMIZE = 6
                if self._get_foreground_windows() != package_name:
                    return False
                hwnd = ctypes.windll.user32.GetForegroundWindow()
                return bool(ctypes.windll.user32.ShowWindow(hwnd, SW_MINIMIZE))
            else:
                logger.debug(f"Hiding apps is not supported on {self.platform}")
                return False
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"Error hiding {package_name}: {e}")
            return False

    def check_permission(self) -> bool:
        """
        Check if the app can read the foreground application.

        Returns:
            True if permissions are granted, False otherwise.
        """
        if self._permission_checked:
            return self._has_permission

        package = self.get_foreground_package()
        self._permission_checked = True

        if package:
            logger.debug(f"Permission check passed, foreground app: {package}")
        else:
            logger.warning("Permission check failed - could not read foreground app")

        return self._has_permission

    def get_permission_instructions(self) -> str:
        """
        Get instructions for enabling foreground monitoring.

        Returns:
            Platform-specific instructions string.
        """
        if self.platform == "darwin":
            return (
                "App locking requires TWO permissions:\n\n"
                "1. ACCESSIBILITY permission:\n"
                "   • System Settings → Privacy & Security → Accessibility\n"
                "   • Add your terminal (or str00py) and enable the checkbox\n\n"
                "2. AUTOMATION permission (System Events):\n"
                "   • System Settings → Privacy & Security → Automation\n"
                "   • Enable 'System Events' under your terminal\n\n"
                "After enabling, restart str00py."
            )
        elif self.platform == "win32":
            return (
                "Foreground monitoring should work automatically on Windows.\n"
                "If you're having issues, try running as Administrator."
            )
        else:
            return f"Foreground monitoring is not supported on {self.platform}"
