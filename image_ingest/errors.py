"""
Error types raised by the ingest core and its upload front-ends.
"""


class IngestError(Exception):
    """Base class for every ingest failure."""


class InvalidConfig(IngestError, ValueError):
    """Transform configuration is malformed. Raised before any processing."""


class DecodeError(IngestError):
    """Bytes claimed to be an image but the codec could not read them."""


class EncodeError(IngestError):
    """Codec could not produce output in the requested format."""


class FileUnavailable(IngestError):
    """Uploaded file is missing or its existence cannot be determined."""
