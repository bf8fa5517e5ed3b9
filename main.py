#!/usr/bin/env python3
"""
str00py - Main Entry Point

Locks chosen applications behind a Stroop colour-naming challenge. While
`run` is active, bringing a locked app to the foreground opens a challenge
in the terminal; the app stays hidden until the ink colour is named.

Usage:
    python main.py run                  # Watch the foreground and challenge locked apps
    python main.py lock com.apple.Safari
    python main.py unlock com.apple.Safari
    python main.py list
    python main.py stats
    python main.py settings [--set key=value]
"""

import sys
import queue
import logging
import argparse
from dataclasses import dataclass
from typing import Optional

import config
from challenge.stroop import COLOR_MAP, StroopPuzzle, generate_puzzle
from core.challenge_state import Challenge, ChallengeState
from core.coordinator import LockCoordinator
from core.errors import StorageError
from core.feedback import FeedbackPlayer
from core.registry import LockRegistry
from core.sessions import SessionTracker
from instance_lock import InstanceLock
from screen.foreground import ForegroundDetector
from screen.watcher import ForegroundWatcher, PollingForegroundSource
from storage.locked_apps import LockedAppStore
from storage.settings import SettingsManager
from tracking.stats import ChallengeStats

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)


@dataclass
class LockerApp:
    """Wired-up collaborators for one str00py process."""
    settings: SettingsManager
    registry: LockRegistry
    stats: ChallengeStats
    coordinator: LockCoordinator


def build_app() -> LockerApp:
    """
    Construct every collaborator from the configured data files.

    Returns:
        LockerApp with the coordinator wired to its state.
    """
    settings = SettingsManager(config.SETTINGS_FILE)
    registry = LockRegistry(LockedAppStore(config.LOCKED_APPS_FILE))
    stats = ChallengeStats(config.STATS_FILE)
    coordinator = LockCoordinator(
        registry=registry,
        challenge_state=ChallengeState(timeout_seconds=settings.challenge_timeout),
        sessions=SessionTracker(session_duration=lambda: settings.session_duration),
        settings=settings,
        stats=stats,
        feedback=FeedbackPlayer(sound_enabled=lambda: settings.sound_enabled),
    )
    return LockerApp(settings=settings, registry=registry, stats=stats, coordinator=coordinator)


# =============================================================================
# Terminal challenge UI
# =============================================================================

def _colorize(text: str, color_name: str) -> str:
    """Wrap text in a 24-bit ANSI colour escape."""
    hex_value = COLOR_MAP[color_name].lstrip("#")
    r, g, b = (int(hex_value[i:i + 2], 16) for i in (0, 2, 4))
    return f"\033[1;38;2;{r};{g};{b}m{text}\033[0m"


def _parse_answer(raw: str, puzzle: StroopPuzzle) -> str:
    """Accept either an option number or a colour name."""
    raw = raw.strip()
    if raw.isdigit():
        index = int(raw) - 1
        if 0 <= index < len(puzzle.options):
            return puzzle.options[index]
    return raw.capitalize()


class ConsoleChallengeUI:
    """
    Presents challenges in the terminal.

    Challenge requests arrive on the watcher thread and are queued; the main
    thread owns stdin and works through them one at a time.
    """

    def __init__(self, coordinator: LockCoordinator, detector: ForegroundDetector,
                 poller: Optional[PollingForegroundSource] = None):
        self.coordinator = coordinator
        self.detector = detector
        self.poller = poller
        self.requests: "queue.Queue[Challenge]" = queue.Queue()

        coordinator.on_show_challenge = self.requests.put
        coordinator.on_allow = self._on_allow
        coordinator.on_deny = self._on_deny

    def _on_allow(self, package_name: str) -> None:
        print(f"✓ Unlocked {package_name}")

    def _on_deny(self, package_name: str) -> None:
        print(f"🔒 {package_name} stays locked")
        self.detector.hide_package(package_name)
        if self.poller is not None:
            # Returning to the app must count as a new foreground event
            self.poller.forget_last()

    def serve_forever(self) -> None:
        """Answer challenges until interrupted."""
        while True:
            try:
                challenge = self.requests.get(timeout=0.5)
            except queue.Empty:
                continue
            self.run_challenge(challenge)

    def run_challenge(self, challenge: Challenge) -> None:
        if not self.coordinator.is_challenge_current(challenge):
            # Timed out or replaced while queued
            logger.info(f"Skipping stale challenge for {challenge.locked_package}")
            return

        print("\n" + "=" * 60)
        print(f"🔐 {challenge.locked_package} is locked")
        print("Name the INK colour of the word below (not the word itself).")
        print("=" * 60)

        while self.coordinator.is_challenge_current(challenge):
            puzzle = generate_puzzle()
            if not self.coordinator.present_puzzle(puzzle, for_challenge=challenge):
                break

            print(f"\n    {_colorize(puzzle.word.upper(), puzzle.ink_color)}\n")
            for number, (label, color) in enumerate(zip(puzzle.options, puzzle.option_colors), 1):
                print(f"  {number}. {_colorize(label, color)}")

            try:
                raw = input("\nYour answer: ")
            except EOFError:
                raw = ""

            if not self.coordinator.submit_answer(_parse_answer(raw, puzzle)):
                if not raw:
                    print("No answer given.")
                break

        if self.poller is not None:
            self.poller.forget_last()


# =============================================================================
# Commands
# =============================================================================

def cmd_run(app: LockerApp) -> int:
    """Watch the foreground app and challenge locked ones."""
    lock = InstanceLock()
    if not lock.acquire():
        pid = lock.get_owner_pid()
        pid_info = f" (PID: {pid})" if pid else ""
        print(f"\nstr00py is already running{pid_info}.")
        print("Only one instance can run at a time.\n")
        return 1

    detector = ForegroundDetector()
    if not detector.check_permission():
        print(detector.get_permission_instructions())
        lock.release()
        return 1

    watcher = ForegroundWatcher(app.coordinator)
    poller = PollingForegroundSource(detector, watcher)
    ui = ConsoleChallengeUI(app.coordinator, detector, poller)

    try:
        locked = sorted(app.registry.list_locked())
    except StorageError as e:
        print(f"❌ Could not read locked apps: {e}")
        lock.release()
        return 1

    print("\n" + "=" * 60)
    print("🎨 str00py - Stroop App Locker")
    print("=" * 60)
    print(f"Locked apps: {', '.join(locked) if locked else '(none - use `lock` to add some)'}")
    print("Press Ctrl+C to stop.\n")

    app.coordinator.reset()
    watcher.start()
    poller.start()
    try:
        ui.serve_forever()
    except KeyboardInterrupt:
        print("\n\nGoodbye!")
    finally:
        poller.stop()
        watcher.stop()
        app.coordinator.reset()
        lock.release()
    return 0


def cmd_lock(app: LockerApp, package_name: str) -> int:
    if app.registry.is_locked(package_name):
        print(f"{package_name} is already locked")
    else:
        app.registry.add(package_name)
        print(f"🔒 Locked {package_name}")
    return 0


def cmd_unlock(app: LockerApp, package_name: str) -> int:
    if not app.registry.is_locked(package_name):
        print(f"{package_name} was not locked")
    else:
        app.registry.remove(package_name)
        print(f"🔓 Unlocked {package_name}")
    return 0


def cmd_list(app: LockerApp) -> int:
    locked = sorted(app.registry.list_locked())
    if not locked:
        print("No apps are locked.")
    for package_name in locked:
        print(package_name)
    return 0


def cmd_stats(app: LockerApp) -> int:
    print(app.stats.format_summary())
    return 0


def cmd_settings(app: LockerApp, assignments) -> int:
    for assignment in assignments or []:
        key, sep, value = assignment.partition("=")
        if not sep:
            print(f"❌ Expected key=value, got {assignment!r}")
            return 1
        try:
            app.settings.update(key.strip(), value)
        except (KeyError, ValueError) as e:
            print(f"❌ {e}")
            return 1

    for key, value in app.settings.to_dict().items():
        print(f"{key} = {value}")
    return 0


def main(argv=None) -> int:
    """
    Main entry point — parses arguments and runs the chosen command.
    """
    parser = argparse.ArgumentParser(
        description="str00py - Stroop challenge app locker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py lock com.apple.Safari     Lock Safari (macOS bundle id)
  python main.py lock Discord              Lock Discord (Windows exe name)
  python main.py run                       Start watching
  python main.py settings --set challenges_required=2
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Watch the foreground app and challenge locked apps")
    lock_parser = subparsers.add_parser("lock", help="Lock an app")
    lock_parser.add_argument("package", help="Bundle id (macOS) or executable name (Windows)")
    unlock_parser = subparsers.add_parser("unlock", help="Unlock an app")
    unlock_parser.add_argument("package")
    subparsers.add_parser("list", help="List locked apps")
    subparsers.add_parser("stats", help="Show challenge statistics")
    settings_parser = subparsers.add_parser("settings", help="Show or change settings")
    settings_parser.add_argument("--set", dest="assignments", action="append", metavar="KEY=VALUE")

    args = parser.parse_args(argv)

    try:
        app = build_app()
        if args.command == "run":
            return cmd_run(app)
        if args.command == "lock":
            return cmd_lock(app, args.package)
        if args.command == "unlock":
            return cmd_unlock(app, args.package)
        if args.command == "list":
            return cmd_list(app)
        if args.command == "stats":
            return cmd_stats(app)
        return cmd_settings(app, args.assignments)
    except StorageError as e:
        logger.error(f"Storage error: {e}")
        print(f"\n❌ Could not access locked apps: {e}")
        return 1
    except ValueError as e:
        print(f"\n❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
