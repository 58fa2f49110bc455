"""
Data sources answering one blocking request at a time.

Every client method either returns fresh data or raises ``FetchError``.
Clients never retry; that is left to the caller.
"""

import logging
import re
import socket
from typing import Any

import requests

from panopticon.config import AkkaSettings, JMXConnectionSettings
from panopticon.errors import ConstructionError, FetchError
from panopticon.models import (
    ActorNode,
    Fiber,
    FiberStatus,
    HikariMetrics,
    SlickConfig,
    SlickMetrics,
)

logger = logging.getLogger(__name__)

# Extra seconds granted on top of the server side assembly timeout
HTTP_GRACE = 2.0

_FIBER_HEADER = re.compile(r"^#(\d+)\b")
_FIBER_STATUS = re.compile(r"Status:\s*(Running|Suspended|Done|Finishing)\b", re.IGNORECASE)
_FIBER_PARENT = re.compile(r"Parent:\s*#(\d+)\b", re.IGNORECASE)
_BLOCK_SEPARATOR = re.compile(r"\n[ \t]*\n")


def split_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts."""
    host, _, port = address.rpartition(":")
    if not host or not port.isdigit():
        raise ValueError(f"expected host:port, got {address!r}")
    return host, int(port)


def parse_fiber_dump(text: str) -> list[Fiber]:
    """
    Parse a zmx dump reply into fibers.

    The reply is a sequence of blocks separated by blank lines. Each block
    starts with ``#<id>`` and contains a ``Status: <status>`` line and, for
    child fibers, a ``Parent: #<id>`` line. The block text is kept as the
    fiber's dump.
    """
    text = text.replace("\r\n", "\n").strip()
    if not text:
        return []

    fibers: list[Fiber] = []
    for block in _BLOCK_SEPARATOR.split(text):
        block = block.strip("\n")
        header = _FIBER_HEADER.match(block)
        if header is None:
            raise FetchError("zmx", f"malformed fiber dump block: {block.splitlines()[0]!r}")
        status = _FIBER_STATUS.search(block)
        if status is None:
            raise FetchError("zmx", f"no status for fiber #{header.group(1)}")
        parent = _FIBER_PARENT.search(block)
        fibers.append(
            Fiber(
                id=int(header.group(1)),
                parent_id=int(parent.group(1)) if parent else None,
                status=FiberStatus(status.group(1).capitalize()),
                dump=block,
            )
        )
    return fibers


def flatten_actor_tree(tree: Any) -> list[ActorNode]:
    """
    Flatten a nested ``{name: {child: {...}}}`` actor tree into nodes.

    Node ids are full paths joined with ``/``; top level actors have no parent.
    """
    if not isinstance(tree, dict):
        raise FetchError("akka", f"expected an object as actor tree, got {type(tree).__name__}")

    nodes: list[ActorNode] = []
    # Depth first, keeping the order of the reply
    pending: list[tuple[str | None, str, Any]] = [(None, name, sub) for name, sub in reversed(tree.items())]
    while pending:
        parent, name, children = pending.pop()
        path = name if parent is None else f"{parent}/{name}"
        nodes.append(ActorNode(id=path, parent_id=parent, name=name))
        if isinstance(children, dict):
            pending.extend((path, child, sub) for child, sub in reversed(children.items()))
    return nodes


class ZMXClient:
    """
    Client for a zio-zmx server.

    Opens a new connection per request, sends the ``dump`` command and reads
    the reply until the server closes the connection.
    """

    DUMP_COMMAND = b"*1\r\n$4\r\ndump\r\n"

    def __init__(self, address: str, timeout: float = 10.0) -> None:
        try:
            self._host, self._port = split_address(address)
        except ValueError as e:
            raise ConstructionError("zmx", str(e)) from e
        self._address = address
        self._timeout = timeout

    @property
    def address(self) -> str:
        return self._address

    def fetch_fiber_tree(self) -> list[Fiber]:
        """Request a full fiber dump."""
        reply = self._execute(self.DUMP_COMMAND)
        if reply.startswith("-"):
            raise FetchError("zmx", reply[1:].strip() or "server returned an error")
        if reply.startswith("+"):
            _, _, reply = reply.partition("\n")
        return parse_fiber_dump(reply)

    def _execute(self, command: bytes) -> str:
        try:
            with socket.create_connection((self._host, self._port), timeout=self._timeout) as sock:
                sock.sendall(command)
                chunks = []
                while True:
                    chunk = sock.recv(4096)
                    if not chunk:
                        break
                    chunks.append(chunk)
        except OSError as e:
            raise FetchError("zmx", f"Couldn't get fiber dump from {self._address}: {e}") from e

        logger.debug("Received %d bytes from %s", sum(len(c) for c in chunks), self._address)
        try:
            return b"".join(chunks).decode("utf-8")
        except UnicodeDecodeError as e:
            raise FetchError("zmx", f"reply from {self._address} is not utf-8") from e


class JMXClient:
    """
    Reads Slick and HikariCP MBeans through a Jolokia agent.

    The agent is probed once on construction; an unreachable agent raises
    ``ConstructionError``.
    """

    def __init__(self, settings: JMXConnectionSettings, timeout: float = 5.0) -> None:
        self._settings = settings
        self._timeout = timeout
        self._url = f"http://{settings.address}/jolokia"
        self._session = requests.Session()
        if settings.username is not None:
            self._session.auth = (settings.username, settings.password or "")

        try:
            resp = self._session.get(f"{self._url}/version", timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ConstructionError("jmx", f"Couldn't connect to {settings.address}: {e}") from e
        logger.info("Connected to jmx agent at %s", self._url)

    @property
    def slick_bean(self) -> str:
        return f"slick:type=AsyncExecutor,name={self._settings.db_pool_name}"

    @property
    def hikari_bean(self) -> str:
        return f"com.zaxxer.hikari:type=Pool ({self._settings.db_pool_name})"

    def fetch_pool_config(self) -> SlickConfig:
        values = self._read(self.slick_bean, ["MaxThreads", "MaxQueueSize"])
        return SlickConfig(
            max_threads=int(values["MaxThreads"]),
            max_queue_size=int(values["MaxQueueSize"]),
        )

    def fetch_pool_metrics(self) -> SlickMetrics:
        values = self._read(self.slick_bean, ["ActiveThreads", "QueueSize"])
        return SlickMetrics(
            active_threads=int(values["ActiveThreads"]),
            queue_size=int(values["QueueSize"]),
        )

    def fetch_secondary_metrics(self) -> HikariMetrics:
        values = self._read(
            self.hikari_bean,
            ["TotalConnections", "ActiveConnections", "IdleConnections", "ThreadsAwaitingConnection"],
        )
        return HikariMetrics(
            total=int(values["TotalConnections"]),
            active=int(values["ActiveConnections"]),
            idle=int(values["IdleConnections"]),
            waiting=int(values["ThreadsAwaitingConnection"]),
        )

    def _read(self, mbean: str, attributes: list[str]) -> dict[str, Any]:
        """Read attributes of one MBean."""
        payload = {"type": "read", "mbean": mbean, "attribute": attributes}
        try:
            resp = self._session.post(self._url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            raise FetchError("jmx", f"request for {mbean} failed: {e}") from e
        except ValueError as e:
            raise FetchError("jmx", f"non-JSON reply for {mbean}") from e

        if not isinstance(body, dict):
            raise FetchError("jmx", f"unexpected reply for {mbean}")
        if body.get("status") != 200:
            raise FetchError("jmx", body.get("error") or f"could not read {mbean}")
        values = body.get("value")
        if not isinstance(values, dict) or any(a not in values for a in attributes):
            raise FetchError("jmx", f"missing attributes in reply for {mbean}")
        return values


class AkkaClient:
    """Reads the actor tree and actor count of an Akka system over HTTP."""

    def __init__(self, settings: AkkaSettings) -> None:
        self._settings = settings
        self._session = requests.Session()

    def fetch_actor_tree(self) -> list[ActorNode]:
        tree = self._get_json(self._settings.tree_address, self._settings.tree_timeout)
        return flatten_actor_tree(tree)

    def fetch_actor_count(self) -> int:
        count = self._get_json(self._settings.count_address, self._settings.count_timeout)
        if isinstance(count, bool) or not isinstance(count, int):
            raise FetchError("akka", f"expected an integer actor count, got {count!r}")
        return count

    def _get_json(self, address: str, timeout_ms: int) -> Any:
        try:
            resp = self._session.get(
                address,
                params={"timeout": timeout_ms},
                timeout=timeout_ms / 1000 + HTTP_GRACE,
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise FetchError("akka", f"request to {address} failed: {e}") from e
        except ValueError as e:
            raise FetchError("akka", f"non-JSON reply from {address}") from e
