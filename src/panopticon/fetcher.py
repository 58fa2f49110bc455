"""Fetch engine for panopticon: one worker thread owning every data source."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from queue import Queue
from typing import Any, Protocol

from panopticon.config import Settings
from panopticon.errors import FetchError, SourceError
from panopticon.models import ActorNode, Fiber, HikariMetrics, SlickConfig, SlickMetrics
from panopticon.sources import AkkaClient, JMXClient, ZMXClient

logger = logging.getLogger(__name__)


class FiberSource(Protocol):
    def fetch_fiber_tree(self) -> list[Fiber]: ...


class PoolSource(Protocol):
    def fetch_pool_config(self) -> SlickConfig: ...

    def fetch_pool_metrics(self) -> SlickMetrics: ...

    def fetch_secondary_metrics(self) -> HikariMetrics: ...


class ActorSource(Protocol):
    def fetch_actor_tree(self) -> list[ActorNode]: ...

    def fetch_actor_count(self) -> int: ...


class FetcherRequest(Enum):
    """Kinds of requests the fetch worker answers."""

    FIBER_DUMP = "fiber_dump"
    REGULAR_FIBER_DUMP = "regular_fiber_dump"
    SLICK_CONFIG = "slick_config"
    SLICK_METRICS = "slick_metrics"
    HIKARI_METRICS = "hikari_metrics"
    ACTOR_TREE = "actor_tree"
    ACTOR_COUNT = "actor_count"


@dataclass(slots=True, frozen=True)
class FetcherResponse:
    """
    Answer to one request.

    ``kind`` echoes the request; it is ``None`` for the fatal failure the
    worker sends for every request once its sources failed to initialize.
    """

    kind: FetcherRequest | None
    value: Any = None
    error: SourceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def fatal(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, kind: FetcherRequest, value: Any) -> "FetcherResponse":
        return cls(kind=kind, value=value)

    @classmethod
    def failure(cls, kind: FetcherRequest, error: SourceError) -> "FetcherResponse":
        return cls(kind=kind, error=error)

    @classmethod
    def fatal_failure(cls, error: SourceError) -> "FetcherResponse":
        return cls(kind=None, error=error)


class Fetcher:
    """Owns one client per configured source and answers requests synchronously."""

    def __init__(
        self,
        zmx: FiberSource | None = None,
        jmx: PoolSource | None = None,
        akka: ActorSource | None = None,
    ) -> None:
        self._handlers: dict[FetcherRequest, tuple[str, Callable[[], Any] | None]] = {
            FetcherRequest.FIBER_DUMP: ("zmx", zmx and zmx.fetch_fiber_tree),
            FetcherRequest.REGULAR_FIBER_DUMP: ("zmx", zmx and zmx.fetch_fiber_tree),
            FetcherRequest.SLICK_CONFIG: ("jmx", jmx and jmx.fetch_pool_config),
            FetcherRequest.SLICK_METRICS: ("jmx", jmx and jmx.fetch_pool_metrics),
            FetcherRequest.HIKARI_METRICS: ("jmx", jmx and jmx.fetch_secondary_metrics),
            FetcherRequest.ACTOR_TREE: ("akka", akka and akka.fetch_actor_tree),
            FetcherRequest.ACTOR_COUNT: ("akka", akka and akka.fetch_actor_count),
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "Fetcher":
        """
        Create clients for every configured source.

        Raises:
            ConstructionError: A configured source cannot be initialized.
        """
        return cls(
            zmx=ZMXClient(settings.zio_zmx) if settings.zio_zmx else None,
            jmx=JMXClient(settings.jmx) if settings.jmx else None,
            akka=AkkaClient(settings.akka) if settings.akka else None,
        )

    def handle(self, request: FetcherRequest) -> FetcherResponse:
        """Run one request against its source and wrap the outcome."""
        source, call = self._handlers[request]
        if call is None:
            return FetcherResponse.failure(request, FetchError(source, "source is not configured"))
        try:
            return FetcherResponse.success(request, call())
        except SourceError as e:
            logger.warning("Request %s failed: %s", request.value, e)
            return FetcherResponse.failure(request, e)


class FetchWorker:
    """
    Runs a Fetcher in a daemon thread.

    Takes requests from a queue one at a time and hands exactly one response
    per request to ``respond``. The Fetcher is built inside the thread; if
    that fails, every later request is answered with the same fatal failure.
    """

    def __init__(
        self,
        factory: Callable[[], Fetcher],
        requests: Queue[FetcherRequest | None],
        respond: Callable[[FetcherResponse], None],
    ) -> None:
        """
        Initialize the FetchWorker.

        Args:
            factory: Builds the Fetcher; may raise SourceError.
            requests: Queue of pending requests, shared with the controller.
            respond: Called from the worker thread with each response.
        """
        self._factory = factory
        self._requests = requests
        self._respond = respond
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._fatal: FetcherResponse | None = None

    @property
    def is_running(self) -> bool:
        """Check if the worker thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def degraded(self) -> bool:
        """Whether construction failed and every request is answered with a fatal failure."""
        return self._fatal is not None

    def start(self) -> None:
        """Start the worker thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="FetchWorker",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the worker thread.

        A request in flight is not cancelled; the thread ends once it returns.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        self._requests.put(None)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        """Main loop running in the background thread."""
        fetcher: Fetcher | None = None
        try:
            fetcher = self._factory()
        except SourceError as e:
            logger.error("Data sources failed to initialize, answering every request with: %s", e)
            self._fatal = FetcherResponse.fatal_failure(e)
        else:
            logger.info("Fetch worker started")

        while not self._stop_event.is_set():
            request = self._requests.get()
            if request is None:
                break
            if fetcher is None:
                self._respond(self._fatal)
                continue
            self._respond(self._dispatch(fetcher, request))

        logger.info("Fetch worker stopped")

    def _dispatch(self, fetcher: Fetcher, request: FetcherRequest) -> FetcherResponse:
        try:
            return fetcher.handle(request)
        except Exception as e:
            # Keep exactly one response per request even on bugs in a parser
            logger.exception("Unexpected error while handling %s", request.value)
            return FetcherResponse.failure(request, FetchError("internal", repr(e)))
