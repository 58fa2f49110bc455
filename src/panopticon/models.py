"""Data models for panopticon."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class FiberStatus(Enum):
    """Scheduler status of a fiber."""

    RUNNING = "Running"
    SUSPENDED = "Suspended"
    DONE = "Done"
    FINISHING = "Finishing"


@dataclass(slots=True, frozen=True)
class Fiber:
    """Immutable snapshot of a single fiber from a fiber dump."""

    id: int
    parent_id: int | None
    status: FiberStatus
    dump: str  # Full dump text of the fiber


@dataclass(slots=True, frozen=True)
class FiberCount:
    """Number of fibers per status in one dump."""

    done: int = 0
    suspended: int = 0
    running: int = 0
    finishing: int = 0

    @classmethod
    def from_fibers(cls, fibers: Iterable[Fiber]) -> "FiberCount":
        """Count the fibers of a dump by status."""
        counts = dict.fromkeys(FiberStatus, 0)
        for fiber in fibers:
            counts[fiber.status] += 1
        return cls(
            done=counts[FiberStatus.DONE],
            suspended=counts[FiberStatus.SUSPENDED],
            running=counts[FiberStatus.RUNNING],
            finishing=counts[FiberStatus.FINISHING],
        )

    @property
    def total(self) -> int:
        return self.done + self.suspended + self.running + self.finishing


@dataclass(slots=True, frozen=True)
class ActorNode:
    """Immutable snapshot of one actor in an actor hierarchy."""

    id: str  # Full actor path, e.g. 'user/service/worker'
    parent_id: str | None
    name: str


@dataclass(slots=True, frozen=True)
class SlickConfig:
    """Static configuration of a Slick async executor."""

    max_threads: int
    max_queue_size: int


@dataclass(slots=True, frozen=True)
class SlickMetrics:
    """One sample of Slick async executor load."""

    ZERO: ClassVar["SlickMetrics"]

    active_threads: int
    queue_size: int


SlickMetrics.ZERO = SlickMetrics(active_threads=0, queue_size=0)


@dataclass(slots=True, frozen=True)
class HikariMetrics:
    """One sample of HikariCP pool usage."""

    ZERO: ClassVar["HikariMetrics"]

    total: int
    active: int
    idle: int
    waiting: int  # Threads awaiting a connection


HikariMetrics.ZERO = HikariMetrics(total=0, active=0, idle=0, waiting=0)
