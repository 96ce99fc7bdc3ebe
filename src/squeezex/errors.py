"""Exception hierarchy for the SqueezeX inference bridge.

Initialization errors invalidate the whole bridge. Classification errors are
per-call and leave the bridge untouched.
"""

from __future__ import annotations


class SqueezexError(Exception):
    """Base class for all SqueezeX errors."""


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class InitializationError(SqueezexError):
    """Raised while loading model artifacts or the vocabulary."""


class ResourceNotFound(InitializationError):
    """A named asset is missing or unreadable."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Asset not found: {name}")
        self.name = name


class ResourceTruncated(InitializationError):
    """An asset yielded fewer bytes than its declared length."""

    def __init__(self, name: str, expected: int, actual: int) -> None:
        super().__init__(f"Short read for {name}: expected {expected} bytes, got {actual}")
        self.name = name
        self.expected = expected
        self.actual = actual


class ModelLoadError(InitializationError):
    """The engine rejected the parameter or weight data."""


# ---------------------------------------------------------------------------
# Classification (per call)
# ---------------------------------------------------------------------------


class ClassificationError(SqueezexError):
    """Raised for a single failed classification request."""


class BridgeNotReady(ClassificationError):
    """Classification was requested before a successful initialization."""


class ShapeMismatch(ClassificationError):
    """Image or tensor dimensions differ from the model's input size."""


class FormatMismatch(ClassificationError):
    """Pixel layout is not the 4-channel color format the model expects."""


class BackendUnavailable(ClassificationError):
    """The accelerated backend was requested but no capable device exists."""


class VocabularyIndexOutOfRange(ClassificationError):
    """The winning class index has no entry in the label table."""

    def __init__(self, index: int, size: int) -> None:
        super().__init__(f"Class index {index} outside vocabulary of {size} entries")
        self.index = index
        self.size = size


class LabelFormatError(ClassificationError):
    """A vocabulary entry is shorter than its identifier prefix."""


class ImageDecodeError(ClassificationError):
    """Uploaded bytes could not be decoded into a pixel buffer."""


class InferenceFailed(ClassificationError):
    """The engine raised during a forward pass."""
