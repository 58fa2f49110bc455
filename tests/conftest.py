"""Shared fakes for panopticon tests."""

import pytest

from panopticon.errors import FetchError
from panopticon.models import (
    ActorNode,
    Fiber,
    FiberStatus,
    HikariMetrics,
    SlickConfig,
    SlickMetrics,
)


class FakeFiberSource:
    """Fiber source answering with a fixed dump, or failing when ``fail`` is set."""

    def __init__(self, fibers: list[Fiber]) -> None:
        self.fibers = fibers
        self.fail = False
        self.calls = 0

    def fetch_fiber_tree(self) -> list[Fiber]:
        self.calls += 1
        if self.fail:
            raise FetchError("zmx", "connection refused")
        return list(self.fibers)


class FakePoolSource:
    """Pool source with a switchable HikariCP bean."""

    def __init__(self, has_hikari: bool = True) -> None:
        self.has_hikari = has_hikari
        self.fail_config = False
        self.fail_metrics = False
        self.samples = 0

    def fetch_pool_config(self) -> SlickConfig:
        if self.fail_config:
            raise FetchError("jmx", "InstanceNotFoundException")
        return SlickConfig(max_threads=20, max_queue_size=1000)

    def fetch_pool_metrics(self) -> SlickMetrics:
        if self.fail_metrics:
            raise FetchError("jmx", "timeout")
        self.samples += 1
        return SlickMetrics(active_threads=self.samples, queue_size=2 * self.samples)

    def fetch_secondary_metrics(self) -> HikariMetrics:
        if not self.has_hikari:
            raise FetchError("jmx", "InstanceNotFoundException")
        return HikariMetrics(total=10, active=4, idle=6, waiting=0)


class FakeActorSource:
    """Actor source with a two level tree."""

    def __init__(self) -> None:
        self.count = 0
        self.fail = False

    def fetch_actor_tree(self) -> list[ActorNode]:
        if self.fail:
            raise FetchError("akka", "timeout")
        return [
            ActorNode(id="user", parent_id=None, name="user"),
            ActorNode(id="user/worker", parent_id="user", name="worker"),
        ]

    def fetch_actor_count(self) -> int:
        if self.fail:
            raise FetchError("akka", "timeout")
        self.count += 1
        return self.count


@pytest.fixture
def sample_fibers() -> list[Fiber]:
    return [
        Fiber(id=1, parent_id=None, status=FiberStatus.RUNNING, dump="#1\nline a\nline b"),
        Fiber(id=2, parent_id=1, status=FiberStatus.SUSPENDED, dump="#2\nline c"),
        Fiber(id=4, parent_id=None, status=FiberStatus.DONE, dump="#4"),
    ]


@pytest.fixture
def fiber_source(sample_fibers) -> FakeFiberSource:
    return FakeFiberSource(sample_fibers)


@pytest.fixture
def pool_source() -> FakePoolSource:
    return FakePoolSource()


@pytest.fixture
def actor_source() -> FakeActorSource:
    return FakeActorSource()
