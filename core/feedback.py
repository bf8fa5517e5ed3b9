"""
Wrong-answer feedback.

Plays a short system sound when the user picks the wrong colour, if sound
is enabled in settings. Playback runs on a daemon thread so the answer path
never waits on audio.
"""

import logging
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Stock system sounds; nothing is bundled with the app
MACOS_SOUND = Path("/System/Library/Sounds/Basso.aiff")
LINUX_SOUND = Path("/usr/share/sounds/freedesktop/stereo/dialog-error.oga")


class FeedbackPlayer:
    """
    Plays feedback for wrong answers according to the current settings.

    Args:
        sound_enabled: Zero-argument callable returning the live setting.
        spawn: Starts the playback job; defaults to a daemon thread.
    """

    def __init__(
        self,
        sound_enabled: Callable[[], bool],
        spawn: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        self._sound_enabled = sound_enabled
        self._spawn = spawn or _spawn_daemon
        self.platform = sys.platform

    def play_wrong_answer_feedback(self) -> bool:
        """
        Play the wrong-answer sound if enabled.

        Returns:
            True if playback was scheduled, False if sound is disabled.
        """
        if not self._sound_enabled():
            return False
        self._spawn(self._play_sound)
        return True

    def _play_sound(self) -> None:
        try:
            if self.platform == "darwin":
                if not MACOS_SOUND.exists():
                    logger.warning(f"Feedback sound not found: {MACOS_SOUND}")
                    return
                subprocess.Popen(
                    ["afplay", str(MACOS_SOUND)],
                    stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                )
            elif self.platform == "win32":
                import winsound
                winsound.MessageBeep(winsound.MB_ICONHAND)
            else:
                if not LINUX_SOUND.exists():
                    logger.debug(f"Feedback sound not found: {LINUX_SOUND}")
                    return
                try:
                    subprocess.Popen(
                        ["paplay", str(LINUX_SOUND)],
                        stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                    )
                except FileNotFoundError:
                    subprocess.Popen(
                        ["ffplay", "-nodisp", "-autoexit", str(LINUX_SOUND)],
                        stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                    )
        except Exception as e:
            logger.warning(f"Sound playback error: {e}")


def _spawn_daemon(job: Callable[[], None]) -> None:
    threading.Thread(target=job, daemon=True).start()
