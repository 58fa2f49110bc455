"""Error types raised by data sources."""


class SourceError(Exception):
    """A data source could not answer."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class ConstructionError(SourceError):
    """A configured data source cannot be reached or initialized at all."""


class FetchError(SourceError):
    """A single request to a data source failed."""
