"""Asset loading: resolve named resources into byte buffers.

Stores are opaque, filename-keyed byte-stream providers. Bundled assets live
in a local directory; the same names can also be resolved from a
HuggingFace Hub repository.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Protocol

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError, LocalEntryNotFoundError

from squeezex.errors import ResourceNotFound, ResourceTruncated
from squeezex.ml.vocabulary import Vocabulary

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from squeezex.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class AssetHandle:
    """An open asset: its declared length and a binary stream over it."""

    name: str
    length: int
    stream: BinaryIO

    def __enter__(self) -> AssetHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stream.close()


class AssetStore(Protocol):
    """Protocol for filename-keyed asset providers."""

    def open(self, name: str) -> AssetHandle:
        """Open a named asset.

        Raises:
            ResourceNotFound: If the asset does not exist or cannot be opened.
        """
        ...


# ---------------------------------------------------------------------------
# Store implementations
# ---------------------------------------------------------------------------


def _open_file(name: str, path: Path) -> AssetHandle:
    if not path.is_file():
        raise ResourceNotFound(name)
    try:
        return AssetHandle(name=name, length=path.stat().st_size, stream=path.open("rb"))
    except OSError as exc:
        raise ResourceNotFound(name) from exc


class DirectoryAssetStore:
    """Serves assets bundled in a local directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def open(self, name: str) -> AssetHandle:
        return _open_file(name, self._root / name)


class HubAssetStore:
    """Resolves assets from a HuggingFace Hub repository into a local directory."""

    def __init__(self, repo_id: str, local_dir: str | Path, subfolder: str | None = None) -> None:
        self._repo_id = repo_id
        self._subfolder = subfolder
        self._local_dir = Path(local_dir)
        self._local_dir.mkdir(parents=True, exist_ok=True)

    def open(self, name: str) -> AssetHandle:
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=self._repo_id,
                    filename=name,
                    subfolder=self._subfolder,
                    local_dir=str(self._local_dir),
                )
            )
        except (HfHubHTTPError, LocalEntryNotFoundError, OSError) as exc:
            raise ResourceNotFound(name) from exc
        logger.info("Resolved %s from %s to %s", name, self._repo_id, downloaded)
        return _open_file(name, downloaded)


class InMemoryAssetStore:
    """Serves assets from an in-memory mapping of name to bytes."""

    def __init__(self, assets: Mapping[str, bytes]) -> None:
        self._assets = dict(assets)

    def open(self, name: str) -> AssetHandle:
        try:
            data = self._assets[name]
        except KeyError:
            raise ResourceNotFound(name) from None
        return AssetHandle(name=name, length=len(data), stream=io.BytesIO(data))


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_asset(store: AssetStore, name: str) -> bytes:
    """Read an entire asset into memory in one pass.

    Raises:
        ResourceNotFound: If the store cannot open the asset.
        ResourceTruncated: If fewer bytes than the declared length were read.
    """
    with store.open(name) as asset:
        try:
            data = asset.stream.read(asset.length)
        except OSError as exc:
            raise ResourceNotFound(name) from exc
    if len(data) != asset.length:
        raise ResourceTruncated(name, asset.length, len(data))
    logger.debug("Loaded %s (%d bytes)", name, len(data))
    return data


def load_vocabulary(store: AssetStore, name: str) -> Vocabulary:
    """Load a line-delimited label list as a Vocabulary."""
    return Vocabulary.from_bytes(load_asset(store, name))


def build_asset_store(settings: Settings) -> AssetStore:
    """Pick the hub store when a repository is configured, else the bundled directory."""
    if settings.assets_repo_id:
        return HubAssetStore(settings.assets_repo_id, settings.assets_dir, settings.assets_subfolder)
    return DirectoryAssetStore(settings.assets_dir)
