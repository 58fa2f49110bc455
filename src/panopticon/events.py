"""Events delivered to the dashboard controller, and the tick source."""

import threading
from dataclasses import dataclass
from enum import Enum
from queue import Queue

from panopticon.fetcher import FetcherResponse


class Key(Enum):
    """Keys the dashboard reacts to."""

    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    PAGE_UP = "pageup"
    PAGE_DOWN = "pagedown"
    ENTER = "enter"
    QUIT = "q"


@dataclass(slots=True, frozen=True)
class KeyInput:
    key: Key


@dataclass(slots=True, frozen=True)
class Tick:
    pass


@dataclass(slots=True, frozen=True)
class Response:
    response: FetcherResponse


Event = KeyInput | Tick | Response


class Ticker:
    """Puts a Tick on the inbound queue every ``interval`` seconds from a daemon thread."""

    def __init__(self, events: Queue[Event], interval: float = 2.0) -> None:
        self._events = events
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="Ticker")
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        # Wait for the interval or until stop is requested
        while not self._stop_event.wait(timeout=self._interval):
            self._events.put(Tick())
