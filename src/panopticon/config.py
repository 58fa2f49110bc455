"""Command line settings and logging setup for panopticon."""

import argparse
import logging
from collections.abc import Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TICK_RATE = 2000
DEFAULT_ACTOR_TREE_TIMEOUT = 1000

DESCRIPTION = """\
Live terminal dashboard for fiber schedulers, connection pools and actor systems.

At least one of the following option sets has to be specified:

  --zio-zmx
  --jmx + --db-pool-name
  --actor-tree + --actor-count
"""


@dataclass(slots=True, frozen=True)
class JMXConnectionSettings:
    """Where to read connection pool MBeans from."""

    address: str
    db_pool_name: str
    username: str | None = None
    password: str | None = None


@dataclass(slots=True, frozen=True)
class AkkaSettings:
    """Actor system endpoints. Timeouts are in milliseconds."""

    tree_address: str
    tree_timeout: int
    count_address: str
    count_timeout: int


@dataclass(slots=True, frozen=True)
class Settings:
    """Everything the dashboard needs to know about what to monitor."""

    tick_rate: int = DEFAULT_TICK_RATE  # Milliseconds
    zio_zmx: str | None = None
    jmx: JMXConnectionSettings | None = None
    akka: AkkaSettings | None = None
    log_file: str | None = None
    log_level: str = "INFO"

    @property
    def has_sources(self) -> bool:
        """Whether at least one source is configured."""
        return self.zio_zmx is not None or self.jmx is not None or self.akka is not None

    @property
    def tick_seconds(self) -> float:
        return self.tick_rate / 1000


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="panopticon",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--tick-rate",
        type=_positive_int,
        default=DEFAULT_TICK_RATE,
        help="Frequency (in ms) to use for fetching metrics. Don't set this too low, "
        "the zmx tab does a full fiber dump every tick.",
    )
    parser.add_argument("--zio-zmx", help="Address of zio-zmx server, e.g. localhost:6789")
    parser.add_argument("--jmx", help="Address of remote jmx source, e.g. localhost:9010")
    parser.add_argument("--jmx-username", help="Optional username for authorized jmx access")
    parser.add_argument("--jmx-password", help="Optional password for authorized jmx access")
    parser.add_argument(
        "--db-pool-name",
        help="Connection pool name, used to qualify JMX beans for Slick and/or HikariCP",
    )
    parser.add_argument("--actor-tree", help="Address of http endpoint to get akka actor tree")
    parser.add_argument("--actor-count", help="Address of http endpoint to get current actor count")
    parser.add_argument(
        "--actor-tree-timeout",
        type=_positive_int,
        default=DEFAULT_ACTOR_TREE_TIMEOUT,
        help="Time period (in ms) to assemble akka actor tree",
    )
    parser.add_argument("--log-file", help="Write logs to this file (the terminal belongs to the UI)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for --log-file",
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Turn parsed arguments into Settings, dropping incomplete option sets."""
    jmx = None
    if args.jmx and args.db_pool_name:
        jmx = JMXConnectionSettings(
            address=args.jmx,
            db_pool_name=args.db_pool_name,
            username=args.jmx_username,
            password=args.jmx_password,
        )

    akka = None
    if args.actor_tree and args.actor_count:
        akka = AkkaSettings(
            tree_address=args.actor_tree,
            tree_timeout=args.actor_tree_timeout,
            count_address=args.actor_count,
            count_timeout=int(args.tick_rate * 0.8),
        )

    return Settings(
        tick_rate=args.tick_rate,
        zio_zmx=args.zio_zmx,
        jmx=jmx,
        akka=akka,
        log_file=args.log_file,
        log_level=args.log_level,
    )


def parse_settings(argv: Sequence[str] | None = None) -> Settings:
    """Parse the command line into Settings."""
    return settings_from_args(build_parser().parse_args(argv))


def configure_logging(settings: Settings) -> None:
    """
    Route panopticon logs to the configured log file.

    Without a log file the records are discarded, since stderr is drawn over
    by the UI.
    """
    root = logging.getLogger("panopticon")
    if settings.log_file is None:
        root.addHandler(logging.NullHandler())
        return

    handler = logging.FileHandler(settings.log_file)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(settings.log_level)
    logger.info("Logging to %s at %s", settings.log_file, settings.log_level)
