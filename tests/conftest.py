"""Shared fixtures: a fake ONNX Runtime session and bundled test assets."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from squeezex.config import Settings
from squeezex.ml.assets import InMemoryAssetStore
from squeezex.ml.bridge import InferenceBridge
from squeezex.ml.engine import Engine
from squeezex.ml.model_spec import MODEL_REGISTRY, ModelSpec

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from numpy.typing import NDArray

SPEC: ModelSpec = MODEL_REGISTRY["squeezenet_v1.1"]

VOCAB_LINES = [
    "n01440764 tench, Tinca tinca",
    "n01443537 goldfish, Carassius auratus",
    "n01484850 great white shark",
    "n01491361 tiger shark, Galeocerdo cuvieri",
]


class FakeOrtSession:
    """Stand-in for onnxruntime.InferenceSession.

    Returns ``scores`` shaped like SqueezeNet's (1, N, 1, 1) output, or raises
    ``fault`` from ``run`` when one is set.
    """

    scores: ClassVar[list[float]] = [0.1, 0.7, 0.2, 0.0]
    created: ClassVar[list[FakeOrtSession]] = []
    fault: ClassVar[Exception | None] = None

    def __init__(self, model: bytes, sess_options: object = None, providers: list[object] | None = None) -> None:
        self.model = model
        self.sess_options = sess_options
        self.providers = [p[0] if isinstance(p, tuple) else p for p in providers or []]
        self.feeds: list[dict[str, NDArray[np.float32]]] = []
        FakeOrtSession.created.append(self)

    def get_providers(self) -> list[str]:
        if "CPUExecutionProvider" in self.providers:
            return self.providers
        return [*self.providers, "CPUExecutionProvider"]

    def run(self, output_names: list[str], input_feed: dict[str, NDArray[np.float32]]) -> list[NDArray[np.float32]]:
        assert output_names == [SPEC.output_name]
        if self.fault is not None:
            raise self.fault
        self.feeds.append(input_feed)
        return [np.asarray(self.scores, dtype=np.float32).reshape(1, -1, 1, 1)]


def make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "accelerator": "cuda",
        "assets_dir": "/tmp/squeezex_test_assets",
        "assets_repo_id": None,
        "intra_op_threads": 0,
        "inter_op_threads": 1,
        "max_concurrent": 2,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def make_assets(vocab_lines: list[str] | None = None) -> dict[str, bytes]:
    lines = VOCAB_LINES if vocab_lines is None else vocab_lines
    return {
        SPEC.param_file: b"\x08\x07fake-onnx-graph",
        SPEC.weight_file: b"\x00\x01\x02\x03" * 16,
        SPEC.vocab_file: ("\n".join(lines) + "\n").encode(),
    }


def make_engine(*, accelerator: bool) -> Engine:
    providers = ["CUDAExecutionProvider", "CPUExecutionProvider"] if accelerator else ["CPUExecutionProvider"]
    engine = Engine(make_settings())
    with patch("squeezex.ml.engine.get_available_providers", return_value=providers):
        engine.startup()
    return engine


@pytest.fixture()
def fake_ort(monkeypatch: pytest.MonkeyPatch) -> Iterator[type[FakeOrtSession]]:
    """Replace ONNX Runtime session construction with ``FakeOrtSession``."""
    monkeypatch.setattr("squeezex.ml.session.InferenceSession", FakeOrtSession)
    monkeypatch.setattr("squeezex.ml.engine.SessionOptions", MagicMock)
    monkeypatch.setattr(FakeOrtSession, "scores", [0.1, 0.7, 0.2, 0.0])
    monkeypatch.setattr(FakeOrtSession, "created", [])
    monkeypatch.setattr(FakeOrtSession, "fault", None)
    yield FakeOrtSession


@pytest.fixture()
def assets() -> dict[str, bytes]:
    return make_assets()


@pytest.fixture()
def cpu_engine() -> Engine:
    return make_engine(accelerator=False)


@pytest.fixture()
def gpu_engine() -> Engine:
    return make_engine(accelerator=True)


@pytest.fixture()
def bridge(fake_ort: type[FakeOrtSession], cpu_engine: Engine, assets: dict[str, bytes]) -> InferenceBridge:
    """A bridge initialized on a host without an accelerator."""
    instance = InferenceBridge(cpu_engine, SPEC)
    assert instance.initialize(InMemoryAssetStore(assets))
    return instance


@pytest.fixture()
def gpu_bridge(fake_ort: type[FakeOrtSession], gpu_engine: Engine, assets: dict[str, bytes]) -> InferenceBridge:
    """A bridge initialized on a host with a CUDA device."""
    instance = InferenceBridge(gpu_engine, SPEC)
    assert instance.initialize(InMemoryAssetStore(assets))
    return instance


def rgba_image(size: int = 227, color: tuple[int, int, int] = (10, 20, 30)) -> NDArray[np.uint8]:
    pixels = np.empty((size, size, 4), dtype=np.uint8)
    pixels[..., :3] = color
    pixels[..., 3] = 255
    return pixels


def write_onnx_assets(directory: Path) -> Path:
    """Write a tiny real ONNX model under the bundled asset names.

    Conv(1x1) -> GlobalAveragePool -> Softmax over four classes, with the
    convolution weights stored as external data in ``SPEC.weight_file``.
    Only class 0 has non-zero weights (0.01 on every input channel).
    """
    onnx = pytest.importorskip("onnx")
    from onnx import TensorProto, helper, numpy_helper

    weights = np.zeros((4, 3, 1, 1), dtype=np.float32)
    weights[0] = 0.01
    graph = helper.make_graph(
        [
            helper.make_node("Conv", [SPEC.input_name, "conv_w"], ["conv"]),
            helper.make_node("GlobalAveragePool", ["conv"], ["pool"]),
            helper.make_node("Softmax", ["pool"], [SPEC.output_name], axis=1),
        ],
        "tiny_squeezenet",
        [helper.make_tensor_value_info(SPEC.input_name, TensorProto.FLOAT, list(SPEC.input_shape))],
        [helper.make_tensor_value_info(SPEC.output_name, TensorProto.FLOAT, [1, 4, 1, 1])],
        initializer=[numpy_helper.from_array(weights, name="conv_w")],
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    onnx.save_model(
        model,
        str(directory / SPEC.param_file),
        save_as_external_data=True,
        all_tensors_to_one_file=True,
        location=SPEC.weight_file,
        size_threshold=0,
    )
    (directory / SPEC.vocab_file).write_bytes(make_assets()[SPEC.vocab_file])
    return directory


def expected_tiny_score(color: tuple[int, int, int]) -> float:
    """Class-0 softmax score the tiny model gives a uniform RGB image."""
    red, green, blue = color
    logit = 0.01 * ((blue - SPEC.mean_bgr[0]) + (green - SPEC.mean_bgr[1]) + (red - SPEC.mean_bgr[2]))
    return float(np.exp(logit) / (np.exp(logit) + 3.0))
