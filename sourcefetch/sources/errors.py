"""Error taxonomy for the source fetching pipeline.

Only ``InvalidQueryError`` and ``NoResultsError`` are ever shown to a caller
(as 400 and 404 respectively). ``AdapterFailure`` and ``NormalizationError``
are recorded and logged by the fetcher, then skipped.
"""


class SourceFetchError(Exception):
    """Base class for all source fetching errors."""


class AdapterFailure(SourceFetchError):
    """One provider failed (HTTP error, timeout, malformed payload)."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class NormalizationError(SourceFetchError):
    """A single raw record could not be reduced to a titled source."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class InvalidQueryError(SourceFetchError):
    """The query was rejected before any provider was contacted."""


class NoResultsError(SourceFetchError):
    """No provider matched an identifier that was expected to resolve."""

    def __init__(self, identifier: str):
        super().__init__(f"No source found for {identifier!r}")
        self.identifier = identifier
