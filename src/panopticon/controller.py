"""Dashboard controller: the only place that mutates monitor state or issues requests."""

import logging
from queue import Queue

from panopticon.config import Settings
from panopticon.events import Event, Key, KeyInput, Response, Tick
from panopticon.fetcher import FetcherRequest, FetcherResponse
from panopticon.state import (
    ActorTreeMonitor,
    SlickMonitor,
    Tab,
    TabKind,
    TabsState,
    ZMXMonitor,
)

logger = logging.getLogger(__name__)


class Dashboard:
    """
    Top level state machine of the dashboard.

    Holds one monitor per configured source and one tab for each, in the
    order ZMX, Slick, Akka. Events are handled one at a time from a single
    thread; requests go to the fetch worker through ``requests``.
    """

    def __init__(self, settings: Settings, requests: Queue[FetcherRequest | None]) -> None:
        if not settings.has_sources:
            raise ValueError("nothing to monitor")
        self._requests = requests
        self.should_quit = False
        self.exit_reason: str | None = None

        self.zmx = ZMXMonitor(settings.zio_zmx) if settings.zio_zmx else None
        self.slick = SlickMonitor(settings.jmx) if settings.jmx else None
        self.actor_tree = ActorTreeMonitor(settings.akka) if settings.akka else None

        tabs: list[Tab] = []
        if self.zmx is not None:
            tabs.append(Tab(TabKind.ZMX, "ZMX"))
        if self.slick is not None:
            tabs.append(Tab(TabKind.SLICK, "Slick"))
        if self.actor_tree is not None:
            tabs.append(Tab(TabKind.AKKA_ACTOR_TREE, "Akka"))
        self.tabs = TabsState(tabs)

    def start(self) -> None:
        """
        Issue the requests that initialize the pool monitor.

        The first Slick sample is only requested once the config read succeeds.
        """
        if self.slick is not None:
            self._send(FetcherRequest.SLICK_CONFIG)
            self._send(FetcherRequest.HIKARI_METRICS)

    def handle(self, event: Event) -> None:
        """Apply one inbound event."""
        if isinstance(event, Tick):
            self.on_tick()
        elif isinstance(event, KeyInput):
            self.on_key(event.key)
        elif isinstance(event, Response):
            self.on_response(event.response)
        else:
            raise TypeError(f"unknown event {event!r}")

    def quit(self, reason: str | None = None) -> None:
        if reason is not None:
            logger.error("Quitting: %s", reason)
        self.should_quit = True
        if self.exit_reason is None:
            self.exit_reason = reason

    def on_tick(self) -> None:
        if self.zmx is not None:
            self._send(FetcherRequest.REGULAR_FIBER_DUMP)
        if self.slick is not None:
            if self.slick.wants_slick_metrics:
                self._send(FetcherRequest.SLICK_METRICS)
            if self.slick.has_hikari:
                self._send(FetcherRequest.HIKARI_METRICS)
        if self.actor_tree is not None:
            self._send(FetcherRequest.ACTOR_COUNT)

    def on_key(self, key: Key) -> None:
        if key is Key.QUIT:
            self.quit()
        elif key is Key.LEFT:
            self.tabs.previous()
        elif key is Key.RIGHT:
            self.tabs.next()
        elif key is Key.ENTER:
            self.on_enter()
        else:
            self._navigate(key)

    def on_enter(self) -> None:
        """Run the on-demand action of the current tab. The Slick tab has none."""
        kind = self.tabs.current().kind
        if kind is TabKind.ZMX:
            self._send(FetcherRequest.FIBER_DUMP)
        elif kind is TabKind.AKKA_ACTOR_TREE:
            self._send(FetcherRequest.ACTOR_TREE)

    def _navigate(self, key: Key) -> None:
        kind = self.tabs.current().kind
        if kind is TabKind.ZMX:
            actions = {
                Key.UP: self.zmx.select_prev_fiber,
                Key.DOWN: self.zmx.select_next_fiber,
                Key.PAGE_UP: self.zmx.scroll_up,
                Key.PAGE_DOWN: self.zmx.scroll_down,
            }
        elif kind is TabKind.AKKA_ACTOR_TREE:
            actions = {
                Key.UP: self.actor_tree.select_prev_actor,
                Key.DOWN: self.actor_tree.select_next_actor,
                Key.PAGE_UP: self.actor_tree.scroll_up,
                Key.PAGE_DOWN: self.actor_tree.scroll_down,
            }
        else:
            return
        actions[key]()

    def on_response(self, response: FetcherResponse) -> None:
        if response.fatal:
            self.quit(str(response.error))
            return

        kind = response.kind
        # Optional features degrade instead of ending the session
        if kind is FetcherRequest.HIKARI_METRICS:
            if response.ok:
                self.slick.append_hikari_metrics(response.value)
            else:
                self.slick.disable_hikari()
            return
        if kind is FetcherRequest.SLICK_CONFIG:
            if response.ok:
                self.slick.replace_slick_config(response.value)
                self._send(FetcherRequest.SLICK_METRICS)
            else:
                logger.warning("Slick config unavailable: %s", response.error)
                self.slick.fail_slick_config()
            return

        if not response.ok:
            self.quit(str(response.error))
        elif kind is FetcherRequest.FIBER_DUMP:
            self.zmx.replace_fiber_dump(response.value)
        elif kind is FetcherRequest.REGULAR_FIBER_DUMP:
            self.zmx.append_fiber_counts(response.value)
        elif kind is FetcherRequest.SLICK_METRICS:
            self.slick.append_slick_metrics(response.value)
        elif kind is FetcherRequest.ACTOR_TREE:
            self.actor_tree.update_actor_tree(response.value)
        elif kind is FetcherRequest.ACTOR_COUNT:
            self.actor_tree.append_actor_count(response.value)

    def _send(self, request: FetcherRequest) -> None:
        if self.should_quit:
            return
        self._requests.put(request)
