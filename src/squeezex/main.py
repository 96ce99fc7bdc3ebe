"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from squeezex.api.routes import router
from squeezex.config import get_settings
from squeezex.ml.assets import build_asset_store
from squeezex.ml.bridge import InferenceBridge
from squeezex.ml.engine import Engine
from squeezex.ml.inference import InferencePool
from squeezex.ml.model_spec import get_model_spec

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: start the engine and load the model, release both on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting SqueezeX (model=%s, accelerator=%s, max_concurrent=%s)",
        settings.model_name,
        settings.accelerator,
        settings.max_concurrent,
    )

    engine = Engine(settings)
    engine.startup()
    app.state.engine = engine

    bridge = InferenceBridge(engine, get_model_spec(settings.model_name))
    if not bridge.initialize(build_asset_store(settings)):
        logger.error("Model %s failed to load, classification disabled", settings.model_name)
    app.state.bridge = bridge

    inference_pool = InferencePool(settings.max_concurrent)
    app.state.inference_pool = inference_pool

    logger.info("SqueezeX ready")
    yield

    logger.info("Shutting down SqueezeX")
    inference_pool.shutdown()
    bridge.close()
    engine.shutdown()
    logger.info("SqueezeX shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="SqueezeX",
        description="Top-1 image classification with SqueezeNet v1.1 on ONNX Runtime",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run("squeezex.main:app", host=settings.host, port=settings.port)
