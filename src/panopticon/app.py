"""panopticon - Main Textual application."""

import logging
import sys
from collections.abc import Callable, Sequence
from functools import partial
from queue import Empty, Queue

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, VerticalScroll
from textual.geometry import Region
from textual.widgets import ContentSwitcher, Footer, Sparkline, Static

from panopticon.config import Settings, build_parser, configure_logging, parse_settings
from panopticon.controller import Dashboard
from panopticon.events import Event, Key, KeyInput, Response, Ticker
from panopticon.fetcher import Fetcher, FetcherRequest, FetchWorker
from panopticon.state import ActorTreeMonitor, SlickMonitor, TabKind, TabsState, ZMXMonitor

logger = logging.getLogger(__name__)

NOTHING_TO_MONITOR = "Nothing to monitor. Please check the following help message.\n"


def render_tabs(tabs: TabsState) -> Text:
    """Render tab titles with the active one highlighted."""
    text = Text()
    for i, title in enumerate(tabs.titles()):
        if i:
            text.append(" | ", style="dim")
        text.append(f" {title} ", style="bold reverse" if i == tabs.index else "")
    return text


def render_list(items: Sequence[str], selected: int, empty: str, top: int = 0) -> Text:
    """Render list items from ``top`` on, one per line, highlighting the selected one."""
    if not items:
        return Text(empty, style="dim")
    text = Text()
    for i, item in enumerate(items[top:], start=top):
        if i > top:
            text.append("\n")
        text.append(item, style="bold black on cyan" if i == selected else "")
    return text


def render_scrolled(body: str, scroll: int) -> Text:
    """Drop the first ``scroll`` lines of ``body``."""
    return Text("\n".join(body.splitlines()[scroll:]))


class TabBar(Static):
    """Tab titles across the top of the screen."""

    DEFAULT_CSS = """
    TabBar {
        height: 1;
        background: $surface;
    }
    """

    def update_tabs(self, tabs: TabsState) -> None:
        self.update(render_tabs(tabs))


class FiberScroll(VerticalScroll):
    """Scrolls the fiber list; never takes focus so the arrow keys stay with the app."""

    can_focus = False


class ZMXPane(Container):
    """Fiber tree, selected fiber dump and fiber count charts."""

    DEFAULT_CSS = """
    ZMXPane Horizontal {
        height: 1fr;
    }

    #fiber-scroll {
        width: 2fr;
        border: solid $primary;
    }

    #fiber-dump {
        width: 3fr;
        border: solid $primary;
    }

    ZMXPane Sparkline {
        height: 3;
    }
    """

    def compose(self) -> ComposeResult:
        with Horizontal():
            with FiberScroll(id="fiber-scroll"):
                yield Static(id="fiber-list")
            yield Static(id="fiber-dump")
        yield Static("Running fibers", classes="chart-title")
        yield Sparkline([], summary_function=max, id="fibers-running")
        yield Static("Suspended fibers", classes="chart-title")
        yield Sparkline([], summary_function=max, id="fibers-suspended")

    def update_monitor(self, monitor: ZMXMonitor) -> None:
        self.query_one("#fiber-list", Static).update(
            render_list(monitor.fibers.items, monitor.fibers.selected, "Press Enter to dump fibers")
        )
        # The list height is only known after the next layout pass
        scroll = self.query_one("#fiber-scroll", FiberScroll)
        scroll.call_after_refresh(
            scroll.scroll_to_region, Region(0, monitor.fibers.selected, 1, 1), animate=False
        )
        self.query_one("#fiber-dump", Static).update(
            render_scrolled(monitor.selected_dump, monitor.scroll)
        )
        counts = monitor.fiber_counts.to_sequence()
        self.query_one("#fibers-running", Sparkline).data = [c.running for c in counts]
        self.query_one("#fibers-suspended", Sparkline).data = [c.suspended for c in counts]


class SlickPane(Container):
    """Slick executor and HikariCP pool charts."""

    DEFAULT_CSS = """
    #slick-info {
        height: auto;
        padding: 1;
        background: $surface;
    }

    SlickPane Sparkline {
        height: 4;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static(id="slick-info")
        yield Static("Slick active threads", classes="chart-title")
        yield Sparkline([], summary_function=max, id="slick-threads")
        yield Static("Slick queue size", classes="chart-title")
        yield Sparkline([], summary_function=max, id="slick-queue")
        with Container(id="hikari"):
            yield Static("Hikari active connections", classes="chart-title")
            yield Sparkline([], summary_function=max, id="hikari-active")
            yield Static("Hikari threads awaiting connection", classes="chart-title")
            yield Sparkline([], summary_function=max, id="hikari-waiting")

    def update_monitor(self, monitor: SlickMonitor) -> None:
        self.query_one("#slick-info", Static).update(self._info(monitor))
        slick = monitor.slick_metrics.to_sequence()
        self.query_one("#slick-threads", Sparkline).data = [m.active_threads for m in slick]
        self.query_one("#slick-queue", Sparkline).data = [m.queue_size for m in slick]

        hikari = self.query_one("#hikari", Container)
        hikari.display = monitor.has_hikari
        if monitor.has_hikari:
            samples = monitor.hikari_metrics.to_sequence()
            self.query_one("#hikari-active", Sparkline).data = [m.active for m in samples]
            self.query_one("#hikari-waiting", Sparkline).data = [m.waiting for m in samples]

    @staticmethod
    def _info(monitor: SlickMonitor) -> Text:
        if monitor.slick_error is not None:
            return Text(monitor.slick_error, style="bold red")
        lines = [f"Pool: {monitor.settings.db_pool_name} @ {monitor.settings.address}"]
        if monitor.config is not None:
            lines.append(
                f"Max threads: {monitor.config.max_threads}  "
                f"Max queue size: {monitor.config.max_queue_size}"
            )
        latest = monitor.slick_metrics.latest
        if latest is not None:
            lines.append(f"Active threads: {latest.active_threads}  Queue size: {latest.queue_size}")
        hikari = monitor.hikari_metrics.latest
        if monitor.has_hikari and hikari is not None:
            lines.append(
                f"Hikari total: {hikari.total}  active: {hikari.active}  "
                f"idle: {hikari.idle}  waiting: {hikari.waiting}"
            )
        return Text("\n".join(lines))


class ActorPane(Container):
    """Actor tree and actor count chart."""

    DEFAULT_CSS = """
    #actor-list {
        height: 1fr;
        border: solid $primary;
    }

    ActorPane Sparkline {
        height: 4;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static(id="actor-list")
        yield Static(id="actor-count", classes="chart-title")
        yield Sparkline([], summary_function=max, id="actor-counts")

    def update_monitor(self, monitor: ActorTreeMonitor) -> None:
        self.query_one("#actor-list", Static).update(self._list(monitor))
        latest = monitor.actor_counts.latest
        self.query_one("#actor-count", Static).update(
            f"Actor count: {latest if latest is not None else '-'}"
        )
        self.query_one("#actor-counts", Sparkline).data = monitor.actor_counts.to_sequence()

    @staticmethod
    def _list(monitor: ActorTreeMonitor) -> Text:
        actors = monitor.actors
        # Never scroll the selected actor out of view
        top = min(monitor.scroll, actors.selected)
        return render_list(actors.items, actors.selected, "Press Enter to load actor tree", top)


class PanopticonApp(App):
    """Main panopticon application."""

    TITLE = "panopticon"
    SUB_TITLE = "PANOPTICON-TUI"

    CSS = """
    Screen {
        layout: vertical;
    }

    ContentSwitcher {
        height: 1fr;
    }

    .chart-title {
        color: $text-muted;
    }
    """

    BINDINGS = [
        ("q", "press('q')", "Quit"),
        ("left", "press('left')", "Prev tab"),
        ("right", "press('right')", "Next tab"),
        ("up", "press('up')", "Up"),
        ("down", "press('down')", "Down"),
        ("pageup", "press('pageup')", "Scroll up"),
        ("pagedown", "press('pagedown')", "Scroll down"),
        ("enter", "press('enter')", "Refresh"),
    ]

    PANES = {
        TabKind.ZMX: "zmx",
        TabKind.SLICK: "slick",
        TabKind.AKKA_ACTOR_TREE: "akka",
    }

    def __init__(
        self,
        settings: Settings,
        fetcher_factory: Callable[[], Fetcher] | None = None,
    ) -> None:
        """
        Initialize the PanopticonApp.

        Args:
            settings: What to monitor.
            fetcher_factory: Builds the data sources inside the fetch worker.
                Defaults to real clients for ``settings``.
        """
        super().__init__()
        self._settings = settings
        self._events: Queue[Event] = Queue()
        self._requests: Queue[FetcherRequest | None] = Queue()
        self.dashboard = Dashboard(settings, self._requests)
        self._worker = FetchWorker(
            fetcher_factory or partial(Fetcher.from_settings, settings),
            self._requests,
            lambda response: self._events.put(Response(response)),
        )
        self._ticker = Ticker(self._events, interval=settings.tick_seconds)
        self._exiting = False

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield TabBar(id="tab-bar")
        with ContentSwitcher(initial=self.PANES[self.dashboard.tabs.current().kind]):
            if self.dashboard.zmx is not None:
                yield ZMXPane(id="zmx")
            if self.dashboard.slick is not None:
                yield SlickPane(id="slick")
            if self.dashboard.actor_tree is not None:
                yield ActorPane(id="akka")
        yield Footer()

    def on_mount(self) -> None:
        """Start the fetch worker and ticker when the app is mounted."""
        self._worker.start()
        self._ticker.start()
        self.dashboard.start()
        self._redraw()
        # Drain the inbound queue on the UI thread
        self.set_interval(0.05, self._process_events)

    def _process_events(self) -> None:
        """Hand every queued event to the dashboard, redrawing after each."""
        if self._exiting:
            return
        while not self.dashboard.should_quit:
            try:
                event = self._events.get_nowait()
            except Empty:
                return
            self.dashboard.handle(event)
            self._redraw()

        self._exiting = True
        self._stop_background()
        self.exit(self.dashboard.exit_reason)

    def _redraw(self) -> None:
        dashboard = self.dashboard
        self.query_one("#tab-bar", TabBar).update_tabs(dashboard.tabs)
        self.query_one(ContentSwitcher).current = self.PANES[dashboard.tabs.current().kind]
        if dashboard.zmx is not None:
            self.query_one("#zmx", ZMXPane).update_monitor(dashboard.zmx)
        if dashboard.slick is not None:
            self.query_one("#slick", SlickPane).update_monitor(dashboard.slick)
        if dashboard.actor_tree is not None:
            self.query_one("#akka", ActorPane).update_monitor(dashboard.actor_tree)

    def action_press(self, key: str) -> None:
        """Forward a key to the dashboard through the inbound queue."""
        self._events.put(KeyInput(Key(key)))

    def on_unmount(self) -> None:
        # Reached without a dashboard quit when Textual closes the app itself
        if not self._exiting:
            self._exiting = True
            self._stop_background()

    def _stop_background(self) -> None:
        logger.info("Shutting down, exit reason: %s", self.dashboard.exit_reason)
        self._ticker.stop()
        self._worker.stop(timeout=1.0)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the panopticon application."""
    settings = parse_settings(argv)
    if not settings.has_sources:
        print(NOTHING_TO_MONITOR)
        build_parser().print_help()
        return 0

    configure_logging(settings)
    app = PanopticonApp(settings)
    exit_reason = app.run()
    if exit_reason:
        print(exit_reason)
    return 0


if __name__ == "__main__":
    sys.exit(main())
