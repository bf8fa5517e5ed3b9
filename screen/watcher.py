"""
Foreground event channel.

Host event sources (a polling detector, an accessibility bridge, tests)
publish ForegroundEvents into a queue; a single consumer thread hands them
to the LockCoordinator in order. When the queue stays empty the consumer
sweeps for timed-out challenges, so a challenge nobody answers still
expires without user action.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForegroundEvent:
    """Notification that package_name became the visible application."""
    package_name: str
    timestamp: datetime = field(default_factory=datetime.now)


class ForegroundWatcher:
    """
    Queue-backed consumer loop in front of the coordinator.

    Delivery is at-least-once: duplicate events for the same package are
    passed through and the coordinator tolerates them.
    """

    def __init__(self, coordinator, sweep_interval: float = config.TIMEOUT_SWEEP_INTERVAL):
        """
        Args:
            coordinator: LockCoordinator receiving events.
            sweep_interval: Seconds of queue silence between timeout sweeps.
        """
        self.coordinator = coordinator
        self.sweep_interval = sweep_interval
        self.events: "queue.Queue[ForegroundEvent]" = queue.Queue()
        self.should_stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Called with (event, decision) after each event is processed
        self.on_decision: Optional[Callable[[ForegroundEvent, str], None]] = None

    def publish(self, package_name: str, timestamp: Optional[datetime] = None) -> None:
        """
        Queue a foreground change. Safe to call from any thread; never blocks.
        """
        if not package_name:
            return
        event = ForegroundEvent(package_name, timestamp or datetime.now())
        self.events.put_nowait(event)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the consumer thread (no-op if already running)."""
        if self.is_running:
            return
        self.should_stop.clear()
        self._thread = threading.Thread(target=self._run, name="foreground-watcher", daemon=True)
        self._thread.start()
        logger.info("Foreground watcher started")

    def stop(self, timeout: float = 2.0) -> None:
        """Signal the consumer thread to exit and wait for it."""
        self.should_stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Foreground watcher did not stop in time")
            self._thread = None
        logger.info("Foreground watcher stopped")

    def process_pending(self) -> int:
        """
        Drain the queue on the calling thread.

        Returns:
            Number of events processed.
        """
        processed = 0
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return processed
            self._dispatch(event)
            processed += 1

    def _run(self) -> None:
        while not self.should_stop.is_set():
            try:
                event = self.events.get(timeout=self.sweep_interval)
            except queue.Empty:
                self._sweep()
                continue
            self._dispatch(event)

    def _dispatch(self, event: ForegroundEvent) -> None:
        try:
            decision = self.coordinator.handle_foreground_event(event.package_name, event.timestamp)
        except Exception as e:
            # Keep the loop alive; the next event gets a fresh decision
            logger.error(f"Error handling foreground event for {event.package_name}: {e}")
            return
        finally:
            self.events.task_done()

        logger.debug(f"{event.package_name} -> {decision}")
        if self.on_decision:
            try:
                self.on_decision(event, decision)
            except Exception as e:
                logger.error(f"Error in decision callback: {e}")

    def _sweep(self) -> None:
        try:
            self.coordinator.sweep_timeouts()
        except Exception as e:
            logger.error(f"Error sweeping challenge timeouts: {e}")


class PollingForegroundSource:
    """
    Polls a ForegroundDetector and publishes changes to a watcher.

    Only changes are published; the detector is asked every poll_interval
    seconds on a background thread.
    """

    def __init__(self, detector, watcher: ForegroundWatcher,
                 poll_interval: float = config.FOREGROUND_POLL_INTERVAL):
        self.detector = detector
        self.watcher = watcher
        self.poll_interval = poll_interval
        self.should_stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_package: Optional[str] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self.should_stop.clear()
        self._thread = threading.Thread(target=self._poll_loop, name="foreground-poller", daemon=True)
        self._thread.start()
        logger.info(f"Polling foreground app every {self.poll_interval}s")

    def stop(self, timeout: float = 2.0) -> None:
        self.should_stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def poll_once(self) -> Optional[str]:
        """
        Read the foreground app once and publish it if it changed.

        Returns:
            The package that was published, or None.
        """
        package = self.detector.get_foreground_package()
        if not package or package == self._last_package:
            return None
        self._last_package = package
        self.watcher.publish(package)
        return package

    def forget_last(self) -> None:
        """Publish the next reading even if it matches the last one."""
        self._last_package = None

    def _poll_loop(self) -> None:
        while not self.should_stop.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.error(f"Foreground poll failed: {e}")
            self.should_stop.wait(self.poll_interval)
