"""
Exception types raised by the pipeline.
"""


class DubSyncError(RuntimeError):
    """Base class for pipeline errors; the message is shown to the user."""


class GenerationError(DubSyncError):
    """External model unreachable, timed out, or returned no payload. Retryable."""


class ValidationError(GenerationError):
    """Generator output is malformed and must not be cached."""


class DependencyMissingError(DubSyncError):
    """A dubbing was requested for a language that has no transcript yet."""


class StoreError(DubSyncError):
    """The persistent document store failed to read or write."""


class PlaybackWarning(UserWarning):
    """Dub audio could not play; the source video keeps playing."""
