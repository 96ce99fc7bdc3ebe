"""Engine-wide lifecycle and ONNX Runtime backend configuration.

``Engine.startup`` acquires the accelerator (if any) once per process and
``Engine.shutdown`` releases it. Sessions ask the engine for the providers
and options of their backend.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from onnxruntime import GraphOptimizationLevel, SessionOptions, get_available_providers
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

if TYPE_CHECKING:
    from squeezex.config import Settings

logger = logging.getLogger(__name__)


class Backend(StrEnum):
    DEFAULT = "default"
    ACCELERATED = "accelerated"


_ACCELERATOR_PROVIDERS: dict[str, str] = {
    "cuda": "CUDAExecutionProvider",
    "openvino": "OpenVINOExecutionProvider",
}

CPU_PROVIDER = "CPUExecutionProvider"


class Engine:
    """Process-wide handle on the compute engine and its accelerator."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._accelerator_count = 0
        self._started = False

    # -- Lifecycle ----------------------------------------------------------

    def startup(self) -> None:
        """Detect the configured accelerator and record the device count."""
        if self._started:
            return
        provider = self.accelerator_provider
        if provider is None:
            logger.info("Accelerated backend disabled by configuration")
        elif provider in get_available_providers():
            self._accelerator_count = 1
            logger.info("Accelerator available via %s", provider)
        else:
            logger.info("No %s in this ONNX Runtime build, accelerated backend unavailable", provider)
        self._started = True

    def shutdown(self) -> None:
        """Release the accelerator."""
        if not self._started:
            return
        self._accelerator_count = 0
        self._started = False
        logger.info("Engine shut down")

    # -- Queries ------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._started

    @property
    def accelerator_count(self) -> int:
        """Number of usable accelerator devices (0 before startup)."""
        return self._accelerator_count

    @property
    def accelerator_provider(self) -> str | None:
        return _ACCELERATOR_PROVIDERS.get(self._settings.accelerator)

    def providers(self, backend: Backend) -> list[str | tuple[str, dict[str, object]]]:
        """Execution providers for a backend. The accelerated list has no CPU fallback."""
        if backend == Backend.DEFAULT:
            return [CPU_PROVIDER]
        if self._settings.accelerator == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                )
            ]
        if self._settings.accelerator == "openvino":
            return [("OpenVINOExecutionProvider", {"device_type": "GPU"})]
        return []

    def session_options(self, backend: Backend) -> SessionOptions:
        """Fresh session options; each session gets its own instance."""
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if backend == Backend.ACCELERATED and self._settings.accelerator == "openvino":
            # OpenVINO does its own graph optimization
            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
