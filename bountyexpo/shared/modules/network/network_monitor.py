"""
Network Monitor

Online/offline status source. Services subscribe to it and keep their own
flag in sync; a polling monitor drives the flag from a reachability check.
"""
import threading
from typing import Callable, List, Optional

from bountyexpo.shared.modules.log.logger import get_logger

Listener = Callable[[bool], None]


class NetworkMonitor:
    """
    Subscribable online/offline flag. Listeners are called on changes only.
    """

    def __init__(self, online: bool = True, logger=None):
        self._online = online
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self.logger = logger or get_logger(self.__class__.__name__)

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        online = bool(online)
        with self._lock:
            if online == self._online:
                return
            self._online = online
            listeners = list(self._listeners)
        self.logger.info(f"Network status changed: {'online' if online else 'offline'}")
        for listener in listeners:
            try:
                listener(online)
            except Exception as e:
                self.logger.error(f"Error in network status listener: {e}")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe


class PollingNetworkMonitor(NetworkMonitor):
    """
    Polls a reachability check on a background thread.

    The check is any zero-argument callable that returns truthy when the
    remote side is reachable. Raising counts as offline.
    """

    def __init__(self, check: Callable[[], bool], interval_seconds: float = 15.0, online: bool = True, logger=None):
        super().__init__(online=online, logger=logger)
        self.check = check
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> bool:
        try:
            reachable = bool(self.check())
        except Exception as e:
            self.logger.warning(f"Network check failed: {e}")
            reachable = False
        self.set_online(reachable)
        return reachable

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="network-monitor", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def _run(self):
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self.interval_seconds)
