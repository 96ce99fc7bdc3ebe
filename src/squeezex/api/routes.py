"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request, UploadFile, status

from squeezex.api.schemas import (
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
    ModelInfo,
    ModelsResponse,
)
from squeezex.errors import (
    BackendUnavailable,
    BridgeNotReady,
    ClassificationError,
    FormatMismatch,
    ImageDecodeError,
    ShapeMismatch,
)
from squeezex.ml.engine import Backend
from squeezex.ml.preprocessing import decode_image
from squeezex.ml.session import NO_ACCELERATOR_MESSAGE

if TYPE_CHECKING:
    from squeezex.config import Settings
    from squeezex.ml.bridge import InferenceBridge
    from squeezex.ml.engine import Engine
    from squeezex.ml.inference import InferencePool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

_STATUS_BY_ERROR: list[tuple[type[ClassificationError], int]] = [
    (ImageDecodeError, status.HTTP_400_BAD_REQUEST),
    (ShapeMismatch, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (FormatMismatch, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (BackendUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (BridgeNotReady, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_bridge(request: Request) -> InferenceBridge:
    bridge: InferenceBridge = request.app.state.bridge
    return bridge


def _get_engine(request: Request) -> Engine:
    engine: Engine = request.app.state.engine
    return engine


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _to_http_error(exc: ClassificationError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    # Engine faults, or a label table that does not match the model.
    logger.error("Classification fault: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "/classify",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify a 227x227 image",
)
async def classify_image(
    request: Request,
    file: UploadFile,
    backend: Backend = Backend.DEFAULT,
) -> ClassifyImageResponse:
    """Return the top-1 label and score for an uploaded image."""
    settings = _get_settings(request)
    bridge = _get_bridge(request)
    pool = _get_inference_pool(request)

    if not bridge.ready:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Model is not loaded")
    if backend not in bridge.available_backends:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=NO_ACCELERATOR_MESSAGE)

    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File exceeds {settings.max_file_size} bytes",
        )

    try:
        buffer = decode_image(data, settings.max_image_pixels)
        result = await pool.classify(bridge, buffer, backend)
    except ClassificationError as exc:
        raise _to_http_error(exc) from exc
    except TimeoutError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inference queue is full",
        ) from exc

    return ClassifyImageResponse(
        label=result.label,
        score=result.score,
        result=result.formatted,
        backend=str(backend),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    bridge = _get_bridge(request)
    engine = _get_engine(request)
    pool = _get_inference_pool(request)
    vocabulary = bridge.vocabulary
    return HealthResponse(
        status="ok" if bridge.ready else "unavailable",
        ready=bridge.ready,
        accelerator=engine.accelerator_count > 0,
        backends=[str(b) for b in bridge.available_backends],
        model=bridge.spec.name,
        vocabulary_size=len(vocabulary) if vocabulary is not None else 0,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="Describe the served model",
)
async def list_models(request: Request) -> ModelsResponse:
    """Return the served model, its bundled assets, and whether it is loaded."""
    bridge = _get_bridge(request)
    spec = bridge.spec
    return ModelsResponse(
        models=[
            ModelInfo(
                name=spec.name,
                input_size=spec.input_size,
                assets=list(spec.asset_files),
                status="active" if bridge.ready else "unavailable",
                license=spec.license,
            )
        ]
    )
