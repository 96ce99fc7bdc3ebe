"""Inference sessions: one loaded model bound to one compute backend.

A session moves ``unloaded -> params_loaded -> ready`` or ends in ``failed``;
it is never usable in a partial state. The accelerated backend is
represented by ``UnavailableSession`` when no device can serve it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import numpy as np
from onnxruntime import InferenceSession

from squeezex.errors import BackendUnavailable, BridgeNotReady, InferenceFailed, ModelLoadError
from squeezex.ml.assets import load_asset
from squeezex.ml.engine import Backend

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from squeezex.ml.assets import AssetStore
    from squeezex.ml.engine import Engine
    from squeezex.ml.model_spec import ModelSpec

logger = logging.getLogger(__name__)

NO_ACCELERATOR_MESSAGE = "no accelerator capable device"


class SessionState(StrEnum):
    UNLOADED = "unloaded"
    PARAMS_LOADED = "params_loaded"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ModelArtifacts:
    """Parameter and weight blobs of a loaded model."""

    name: str
    params: bytes
    weights: bytes


class ModelSession:
    """An ONNX Runtime session for one model on one backend."""

    def __init__(self, spec: ModelSpec, backend: Backend, engine: Engine) -> None:
        self._spec = spec
        self._backend = backend
        self._engine = engine
        self._state = SessionState.UNLOADED
        self._params: bytes | None = None
        self._artifacts: ModelArtifacts | None = None
        self._session: InferenceSession | None = None
        # ONNX Runtime sessions are not guaranteed safe for concurrent runs here.
        self._lock = threading.Lock()

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def available(self) -> bool:
        return self._state is SessionState.READY

    @property
    def artifacts(self) -> ModelArtifacts | None:
        return self._artifacts

    @property
    def active_providers(self) -> list[str]:
        if self._session is None:
            return []
        return list(self._session.get_providers())

    def load_param(self, data: bytes) -> None:
        """Accept the serialized graph definition.

        Raises:
            ModelLoadError: If called out of order or the data is empty.
        """
        if self._state is not SessionState.UNLOADED:
            raise ModelLoadError(f"Cannot load parameters for {self._spec.name} in state {self._state}")
        if not data:
            self._state = SessionState.FAILED
            raise ModelLoadError(f"Empty parameter data for {self._spec.name}")
        self._params = data
        self._state = SessionState.PARAMS_LOADED

    def load_model(self, data: bytes) -> None:
        """Attach the weight data and build the engine session.

        The weights are registered in memory under the external-data name the
        graph refers to, so nothing is read from disk by the engine itself.

        Raises:
            ModelLoadError: If called out of order or the engine rejects the model.
        """
        if self._state is not SessionState.PARAMS_LOADED or self._params is None:
            raise ModelLoadError(f"Cannot load weights for {self._spec.name} in state {self._state}")
        if not data:
            self._fail()
            raise ModelLoadError(f"Empty weight data for {self._spec.name}")

        opts = self._engine.session_options(self._backend)
        weights = np.frombuffer(data, dtype=np.uint8)
        try:
            opts.add_external_initializers_from_files_in_memory(
                [self._spec.weight_file], [weights], [weights.size]
            )
            session = InferenceSession(
                self._params,
                sess_options=opts,
                providers=self._engine.providers(self._backend),
            )
        except Exception as exc:
            self._fail()
            raise ModelLoadError(f"Engine rejected {self._spec.name} ({self._backend}): {exc}") from exc

        self._artifacts = ModelArtifacts(name=self._spec.name, params=self._params, weights=data)
        self._session = session
        self._params = None
        self._state = SessionState.READY

    def run(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run one forward pass and return the flattened output scores.

        Raises:
            InferenceFailed: If the engine rejects the input or faults mid-run.
        """
        if self._session is None:
            raise BridgeNotReady(f"{self._backend} session for {self._spec.name} is not loaded")
        try:
            with self._lock:
                outputs = self._session.run([self._spec.output_name], {self._spec.input_name: tensor})
        except Exception as exc:
            raise InferenceFailed(f"Forward pass on {self._backend} failed: {exc}") from exc
        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)

    def _fail(self) -> None:
        self._params = None
        self._state = SessionState.FAILED


class UnavailableSession:
    """Stand-in for a backend that has no device to run on."""

    def __init__(self, backend: Backend, reason: str = NO_ACCELERATOR_MESSAGE) -> None:
        self._backend = backend
        self._reason = reason

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def available(self) -> bool:
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def run(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        raise BackendUnavailable(self._reason)


def create_session(
    spec: ModelSpec,
    store: AssetStore,
    backend: Backend,
    engine: Engine,
) -> ModelSession | UnavailableSession:
    """Build a session for a backend from an independent load of the artifacts.

    Returns an ``UnavailableSession`` for the accelerated backend when the
    engine reports no accelerator, or when the accelerator provider did not
    take the session.

    Raises:
        ResourceNotFound: If an artifact is missing.
        ResourceTruncated: If an artifact is short.
        ModelLoadError: If the engine rejects an artifact.
    """
    if backend == Backend.ACCELERATED and engine.accelerator_count == 0:
        logger.info("Skipping %s session for %s: no accelerator", backend, spec.name)
        return UnavailableSession(backend)

    session = ModelSession(spec, backend, engine)
    session.load_param(load_asset(store, spec.param_file))
    session.load_model(load_asset(store, spec.weight_file))

    if backend == Backend.ACCELERATED and engine.accelerator_provider not in session.active_providers:
        logger.warning(
            "%s not active for %s (providers=%s), accelerated backend unavailable",
            engine.accelerator_provider,
            spec.name,
            session.active_providers,
        )
        return UnavailableSession(backend)

    logger.info("Loaded %s session for %s (providers=%s)", backend, spec.name, session.active_providers)
    return session
