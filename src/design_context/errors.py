"""Exception types raised inside the extraction and storage layers.

None of these cross the public API: the context store and the client facade
turn them into ``{"success": False, "error": ...}`` envelopes.
"""


class DesignContextError(Exception):
    """Base class for all design-context errors."""


class MalformedInputError(DesignContextError):
    """The document source payload has no usable root node."""


class ExtractionError(DesignContextError):
    """A type-specific extractor failed on a single node."""


class StoreIOError(DesignContextError):
    """A backing store read, write, delete or scan failed."""


class StoreTimeoutError(StoreIOError):
    """A backing store call did not finish within the configured timeout."""


class DocumentSourceError(DesignContextError):
    """The document source could not deliver a file."""


class SourceTimeoutError(DocumentSourceError):
    """A document source call did not finish within the configured timeout."""


class ScreenshotError(DesignContextError):
    """The screenshot service could not capture an image."""
