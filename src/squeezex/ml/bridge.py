"""The inference bridge: load once, classify many.

``InferenceBridge`` owns the per-backend sessions and the vocabulary for a
single model. Initialization is all-or-nothing; classification failures are
per call and never change the bridge's state.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import numpy as np

from squeezex.errors import (
    BackendUnavailable,
    BridgeNotReady,
    ClassificationError,
    FormatMismatch,
    InitializationError,
    ShapeMismatch,
)
from squeezex.ml.assets import load_vocabulary
from squeezex.ml.classifier import ClassificationResult, select_top_class
from squeezex.ml.engine import Backend
from squeezex.ml.preprocessing import preprocess
from squeezex.ml.session import UnavailableSession, create_session

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from squeezex.ml.assets import AssetStore
    from squeezex.ml.engine import Engine
    from squeezex.ml.model_spec import ModelSpec
    from squeezex.ml.preprocessing import PixelBuffer
    from squeezex.ml.session import ModelSession
    from squeezex.ml.vocabulary import Vocabulary

logger = logging.getLogger(__name__)


class InferenceBridge:
    """Sessions and vocabulary for one model, with an explicit init/close lifecycle."""

    def __init__(self, engine: Engine, spec: ModelSpec) -> None:
        self._engine = engine
        self._spec = spec
        self._sessions: dict[Backend, ModelSession | UnavailableSession] = {}
        self._vocabulary: Vocabulary | None = None

    # -- Lifecycle ----------------------------------------------------------

    def initialize(self, store: AssetStore) -> bool:
        """Load both backend sessions and the vocabulary from an asset store.

        Any artifact failure aborts the whole sequence and leaves the bridge
        unready; nothing loaded before the failure is kept.

        Returns:
            True if the bridge is ready, False otherwise.
        """
        if self.ready:
            logger.info("Bridge for %s already initialized", self._spec.name)
            return True

        try:
            sessions = {backend: create_session(self._spec, store, backend, self._engine) for backend in Backend}
            vocabulary = load_vocabulary(store, self._spec.vocab_file)
        except InitializationError as exc:
            logger.error("Initialization of %s failed: %s", self._spec.name, exc)
            return False

        self._sessions = sessions
        self._vocabulary = vocabulary
        logger.info(
            "Bridge ready (model=%s, labels=%d, backends=%s)",
            self._spec.name,
            len(vocabulary),
            [str(b) for b in self.available_backends],
        )
        return True

    def close(self) -> None:
        """Drop all sessions and the vocabulary."""
        self._sessions = {}
        self._vocabulary = None
        logger.info("Bridge for %s closed", self._spec.name)

    # -- Queries ------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._vocabulary is not None and bool(self._sessions)

    @property
    def spec(self) -> ModelSpec:
        return self._spec

    @property
    def vocabulary(self) -> Vocabulary | None:
        return self._vocabulary

    @property
    def available_backends(self) -> list[Backend]:
        return [backend for backend, session in self._sessions.items() if session.available]

    # -- Classification -----------------------------------------------------

    def classify(self, buffer: PixelBuffer, backend: Backend = Backend.DEFAULT) -> ClassificationResult:
        """Classify a pixel buffer on the chosen backend.

        The backend is checked before the input, and there is no fallback
        from the accelerated to the default backend.

        Raises:
            BridgeNotReady: If ``initialize`` has not succeeded.
            BackendUnavailable: If the backend has no live session.
            ShapeMismatch: If the image is not the model's input size.
            FormatMismatch: If the image is not RGBA.
            VocabularyIndexOutOfRange: If the model output is wider than the vocabulary.
            LabelFormatError: If the winning entry is shorter than its prefix.
            InferenceFailed: If the engine raises during the forward pass.
        """
        session = self._session_for(backend)
        tensor = preprocess(buffer, self._spec)
        return self._run(session, tensor)

    def classify_tensor(self, tensor: NDArray[np.float32], backend: Backend = Backend.DEFAULT) -> ClassificationResult:
        """Classify an already preprocessed tensor."""
        session = self._session_for(backend)
        if tensor.shape != self._spec.input_shape:
            raise ShapeMismatch(f"Expected tensor of shape {self._spec.input_shape}, got {tensor.shape}")
        if tensor.dtype != np.float32:
            raise FormatMismatch(f"Expected a float32 tensor, got {tensor.dtype}")
        return self._run(session, tensor)

    def detect(self, buffer: PixelBuffer, backend: Backend = Backend.DEFAULT) -> str | None:
        """Classify and format, never raising for a per-call failure.

        Returns:
            ``"<label> = <score>"`` on success, the descriptive message when
            the backend is unavailable, or None for any other failed call.
        """
        try:
            return self.classify(buffer, backend).formatted
        except BackendUnavailable as exc:
            logger.info("Backend %s unavailable: %s", backend, exc)
            return str(exc)
        except ClassificationError as exc:
            logger.warning("Classification failed on %s: %s", backend, exc)
            return None

    # -- Internal -----------------------------------------------------------

    def _session_for(self, backend: Backend) -> ModelSession:
        if not self.ready:
            raise BridgeNotReady(f"Bridge for {self._spec.name} is not initialized")
        session = self._sessions[Backend(backend)]
        if isinstance(session, UnavailableSession):
            raise BackendUnavailable(session.reason)
        return session

    def _run(self, session: ModelSession, tensor: NDArray[np.float32]) -> ClassificationResult:
        vocabulary = self._vocabulary
        if vocabulary is None:
            raise BridgeNotReady(f"Bridge for {self._spec.name} is not initialized")

        start = time.perf_counter()
        scores = session.run(tensor)
        index, score = select_top_class(scores)
        label = vocabulary.label(index, self._spec.label_prefix_length)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%.2fms classify (%s, class=%d)", elapsed, session.backend, index)
        return ClassificationResult(index=index, label=label, score=score)
