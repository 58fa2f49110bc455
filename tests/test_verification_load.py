"""Verification Test: Load Test - Large fiber dumps.

Renders fiber dumps the size of a busy scheduler and checks that the tree
builder stays fast, keeps every fiber and copes with very deep parent
chains without hitting the interpreter recursion limit.
"""

import os
import random
import sys
import time
from queue import Queue

import pytest

from panopticon.config import Settings
from panopticon.controller import Dashboard
from panopticon.events import Response
from panopticon.fetcher import FetcherRequest, FetcherResponse
from panopticon.models import Fiber, FiberStatus
from panopticon.tree import fiber_tree


def random_forest(size: int, seed: int = 7) -> list[Fiber]:
    """Build a random fiber forest where every parent precedes its children."""
    rng = random.Random(seed)
    statuses = list(FiberStatus)
    fibers = []
    for i in range(size):
        parent = rng.randrange(i) if i and rng.random() < 0.8 else None
        fibers.append(
            Fiber(id=i, parent_id=parent, status=rng.choice(statuses), dump=f"#{i}\n  at work({i})")
        )
    return fibers


@pytest.fixture
def large_dump() -> list[Fiber]:
    """Scale the dump down in CI to keep the suite fast."""
    is_ci = os.environ.get("CI", "false").lower() == "true"
    return random_forest(5_000 if is_ci else 20_000)


class TestLoadTest:
    """Load test verification suite tests."""

    def test_renders_every_fiber_once(self, large_dump):
        """Test every fiber of a large dump gets exactly one line."""
        lines = fiber_tree(large_dump)

        assert len(lines) == len(large_dump)
        assert sorted(f.id for _, f in lines) == [f.id for f in large_dump]

    def test_render_time(self, large_dump):
        """Test a large dump renders well within one tick."""
        start = time.perf_counter()
        fiber_tree(large_dump)
        elapsed = time.perf_counter() - start

        assert elapsed < 2.0, f"Rendering {len(large_dump)} fibers took {elapsed:.2f}s"

    def test_deep_chain(self):
        """Test a parent chain deeper than the recursion limit renders."""
        depth = sys.getrecursionlimit() + 500
        fibers = [
            Fiber(id=i, parent_id=i - 1 if i else None, status=FiberStatus.SUSPENDED, dump="")
            for i in range(depth)
        ]

        lines = fiber_tree(fibers)

        assert len(lines) == depth
        assert lines[-1][0].startswith("  " * (depth - 1) + "└─#")

    def test_dashboard_replaces_large_dump(self, large_dump):
        """Test the dashboard swaps one large dump for another and resets selection."""
        dashboard = Dashboard(Settings(zio_zmx="localhost:6789"), Queue())

        dashboard.handle(Response(FetcherResponse.success(FetcherRequest.FIBER_DUMP, large_dump)))
        for _ in range(50):
            dashboard.zmx.select_next_fiber()
        smaller = large_dump[: len(large_dump) // 2]
        dashboard.handle(Response(FetcherResponse.success(FetcherRequest.FIBER_DUMP, smaller)))

        assert len(dashboard.zmx.fibers.items) == len(smaller)
        assert dashboard.zmx.fibers.selected == 0
        assert dashboard.zmx.selected_dump == dashboard.zmx.dumps[0]
