"""Tab, list and per-source monitor state owned by the dashboard controller."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from panopticon.config import AkkaSettings, JMXConnectionSettings
from panopticon.models import (
    ActorNode,
    Fiber,
    FiberCount,
    HikariMetrics,
    SlickConfig,
    SlickMetrics,
)
from panopticon.tree import actor_tree, fiber_tree
from panopticon.window import RollingWindow

I = TypeVar("I")

NO_SLICK_METRICS = (
    "No slick jmx metrics found. Are you sure you have registerMbeans=true in your slick config?"
)


class TabKind(Enum):
    """Sources a tab can show."""

    ZMX = "zmx"
    SLICK = "slick"
    AKKA_ACTOR_TREE = "akka"


@dataclass(slots=True, frozen=True)
class Tab:
    kind: TabKind
    title: str


class TabsState:
    """Fixed list of tabs with a wrapping cursor."""

    def __init__(self, tabs: Sequence[Tab]) -> None:
        if not tabs:
            raise ValueError("at least one tab is required")
        self.tabs = tuple(tabs)
        self.index = 0

    def next(self) -> None:
        self.index = (self.index + 1) % len(self.tabs)

    def previous(self) -> None:
        self.index = (self.index - 1) % len(self.tabs)

    def current(self) -> Tab:
        return self.tabs[self.index]

    def titles(self) -> list[str]:
        return [tab.title for tab in self.tabs]


class ListState(Generic[I]):
    """Items with a selection cursor clamped to the list bounds."""

    def __init__(self, items: Sequence[I] = ()) -> None:
        self.items: list[I] = list(items)
        self.selected = 0

    def replace(self, items: Sequence[I]) -> None:
        """Swap in new items and select the first one."""
        self.items = list(items)
        self.selected = 0

    def select_previous(self) -> bool:
        """Move the cursor up. Returns whether it moved."""
        if self.selected > 0:
            self.selected -= 1
            return True
        return False

    def select_next(self) -> bool:
        """Move the cursor down. Returns whether it moved."""
        if self.selected < len(self.items) - 1:
            self.selected += 1
            return True
        return False


def _clamp(value: int, upper: int) -> int:
    return max(0, min(value, upper))


class ZMXMonitor:
    """Fiber tree, selected fiber dump and fiber count history of one zmx server."""

    MAX_FIBER_COUNT_MEASURES = 100

    def __init__(self, address: str) -> None:
        self.address = address
        self.fibers: ListState[str] = ListState()
        self.dumps: list[str] = []
        self.selected_dump = ""
        self.scroll = 0
        self.fiber_counts: RollingWindow[FiberCount] = RollingWindow(self.MAX_FIBER_COUNT_MEASURES)

    @property
    def dump_height(self) -> int:
        """Number of lines in the selected fiber dump."""
        return len(self.selected_dump.splitlines())

    def replace_fiber_dump(self, fibers: Sequence[Fiber]) -> None:
        """Show a fresh full dump, selecting the first fiber."""
        lines = fiber_tree(fibers)
        self.fibers.replace([line for line, _ in lines])
        self.dumps = [fiber.dump for _, fiber in lines]
        self._on_fiber_change()

    def append_fiber_counts(self, fibers: Sequence[Fiber]) -> None:
        self.fiber_counts.push(FiberCount.from_fibers(fibers))

    def select_prev_fiber(self) -> None:
        if self.fibers.select_previous():
            self._on_fiber_change()

    def select_next_fiber(self) -> None:
        if self.fibers.select_next():
            self._on_fiber_change()

    def scroll_up(self) -> None:
        self.scroll = _clamp(self.scroll - 1, self.dump_height)

    def scroll_down(self) -> None:
        self.scroll = _clamp(self.scroll + 1, self.dump_height)

    def _on_fiber_change(self) -> None:
        self.selected_dump = self.dumps[self.fibers.selected] if self.dumps else ""
        self.scroll = 0


class SlickMonitor:
    """
    Slick executor config and load history, plus the optional HikariCP pool.

    HikariCP availability starts unknown (off) and follows the outcome of
    the latest hikari request.
    """

    MAX_SLICK_MEASURES = 25
    MAX_HIKARI_MEASURES = 100

    def __init__(self, settings: JMXConnectionSettings) -> None:
        self.settings = settings
        self.config: SlickConfig | None = None
        self.slick_error: str | None = None
        self.has_hikari = False
        self.slick_metrics: RollingWindow[SlickMetrics] = RollingWindow(self.MAX_SLICK_MEASURES)
        self.hikari_metrics: RollingWindow[HikariMetrics] = RollingWindow(self.MAX_HIKARI_MEASURES)

    @property
    def wants_slick_metrics(self) -> bool:
        return self.config is not None and self.slick_error is None

    def replace_slick_config(self, config: SlickConfig) -> None:
        """Store the executor config and lay down a zero baseline for the charts."""
        self.config = config
        self.slick_error = None
        self.slick_metrics.seed(SlickMetrics.ZERO)

    def fail_slick_config(self) -> None:
        self.slick_error = NO_SLICK_METRICS

    def append_slick_metrics(self, metrics: SlickMetrics) -> None:
        self.slick_metrics.push(metrics)

    def append_hikari_metrics(self, metrics: HikariMetrics) -> None:
        self.has_hikari = True
        self.hikari_metrics.push(metrics)

    def disable_hikari(self) -> None:
        self.has_hikari = False


class ActorTreeMonitor:
    """Actor hierarchy and actor count history of one actor system."""

    MAX_ACTOR_COUNT_MEASURES = 100

    def __init__(self, settings: AkkaSettings) -> None:
        self.settings = settings
        self.actors: ListState[str] = ListState()
        self.nodes: list[ActorNode] = []
        self.scroll = 0
        self.actor_counts: RollingWindow[int] = RollingWindow(self.MAX_ACTOR_COUNT_MEASURES)

    @property
    def selected_path(self) -> str:
        return self.nodes[self.actors.selected].id if self.nodes else ""

    def update_actor_tree(self, nodes: Sequence[ActorNode]) -> None:
        """Show a freshly assembled tree, selecting the first actor."""
        lines = actor_tree(nodes)
        self.actors.replace([line for line, _ in lines])
        self.nodes = [node for _, node in lines]
        self.scroll = 0

    def append_actor_count(self, count: int) -> None:
        self.actor_counts.push(count)

    def select_prev_actor(self) -> None:
        self.actors.select_previous()

    def select_next_actor(self) -> None:
        self.actors.select_next()

    def scroll_up(self) -> None:
        self.scroll = _clamp(self.scroll - 1, len(self.actors.items))

    def scroll_down(self) -> None:
        self.scroll = _clamp(self.scroll + 1, len(self.actors.items))
