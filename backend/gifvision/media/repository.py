"""
Media repository: where finished renders are recorded.

The scheduler never decides where an output lives. After FFmpeg succeeds it
hands the rendered file to the repository, and the path the repository
returns is the canonical one reported in the Completed event.

Implementations:
- InMemoryMediaRepository: keeps the render path as-is, tracks the latest
  asset per slot. Used by tests and previews.
- FileSystemMediaRepository: copies outputs under a store root and writes a
  JSON sidecar next to each copy. Sidecars are reloaded at start-up so a
  restarted service knows what was rendered before.

    <root>/streams/layer_1_stream_a_<ms>_<id>.gif
    <root>/streams/layer_1_stream_a_<ms>_<id>.json
    <root>/blends/layer_1_blend_<ms>_<id>.gif
    <root>/blends/master_blend_<ms>_<id>.gif
"""

import logging
import shutil
import threading
import time
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..execution.errors import StorageError
from ..render.models import StreamSelection

logger = logging.getLogger(__name__)


class AssetKind(str, Enum):
    STREAM = "stream"
    LAYER_BLEND = "layer_blend"
    MASTER_BLEND = "master_blend"


class MediaAsset(BaseModel):
    """A stored render and which slot produced it."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: AssetKind
    layer_id: Optional[int] = None
    stream: Optional[StreamSelection] = None
    path: str
    display_name: str
    recorded_at: datetime = Field(default_factory=datetime.now)


def stream_display_name(layer_id: int, stream: StreamSelection) -> str:
    return f"Layer {layer_id} • Stream {stream.value}"


def layer_blend_display_name(layer_id: int) -> str:
    return f"Layer {layer_id} Blend"


MASTER_BLEND_DISPLAY_NAME = "Master Blend"


class MediaRepository(Protocol):
    """Storage hook used by the scheduler after a successful render."""

    def store_stream_output(self, layer_id: int, stream: StreamSelection, path: str) -> MediaAsset:
        ...

    def store_layer_blend(self, layer_id: int, path: str) -> MediaAsset:
        ...

    def store_master_blend(self, path: str) -> MediaAsset:
        ...


class InMemoryMediaRepository:
    """Thread-safe repository that records paths without touching the disk."""

    def __init__(self):
        self._lock = threading.Lock()
        self._streams: Dict[Tuple[int, StreamSelection], MediaAsset] = {}
        self._layers: Dict[int, MediaAsset] = {}
        self._master: Optional[MediaAsset] = None

    def store_stream_output(self, layer_id: int, stream: StreamSelection, path: str) -> MediaAsset:
        asset = MediaAsset(
            kind=AssetKind.STREAM,
            layer_id=layer_id,
            stream=stream,
            path=path,
            display_name=stream_display_name(layer_id, stream),
        )
        with self._lock:
            self._streams[(layer_id, stream)] = asset
        return asset

    def store_layer_blend(self, layer_id: int, path: str) -> MediaAsset:
        asset = MediaAsset(
            kind=AssetKind.LAYER_BLEND,
            layer_id=layer_id,
            path=path,
            display_name=layer_blend_display_name(layer_id),
        )
        with self._lock:
            self._layers[layer_id] = asset
        return asset

    def store_master_blend(self, path: str) -> MediaAsset:
        asset = MediaAsset(
            kind=AssetKind.MASTER_BLEND,
            path=path,
            display_name=MASTER_BLEND_DISPLAY_NAME,
        )
        with self._lock:
            self._master = asset
        return asset

    def get_stream_output(self, layer_id: int, stream: StreamSelection) -> Optional[MediaAsset]:
        with self._lock:
            return self._streams.get((layer_id, stream))

    def get_layer_blend(self, layer_id: int) -> Optional[MediaAsset]:
        with self._lock:
            return self._layers.get(layer_id)

    def get_master_blend(self) -> Optional[MediaAsset]:
        with self._lock:
            return self._master


class FileSystemMediaRepository(InMemoryMediaRepository):
    """
    Repository that copies renders under `root` and persists JSON sidecars.

    Raises StorageError when a render cannot be copied or its sidecar
    cannot be written.
    """

    STREAMS_DIR = "streams"
    BLENDS_DIR = "blends"

    def __init__(self, root: Path):
        super().__init__()
        self.root = Path(root)
        self.streams_dir = self.root / self.STREAMS_DIR
        self.blends_dir = self.root / self.BLENDS_DIR
        try:
            self.streams_dir.mkdir(parents=True, exist_ok=True)
            self.blends_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create media store at {self.root}: {e}") from e
        self._load_existing()

    def store_stream_output(self, layer_id: int, stream: StreamSelection, path: str) -> MediaAsset:
        asset_id = str(uuid.uuid4())
        stem = f"layer_{layer_id}_stream_{stream.value.lower()}"
        destination = self._copy_into(path, self.streams_dir, stem, asset_id)
        asset = MediaAsset(
            id=asset_id,
            kind=AssetKind.STREAM,
            layer_id=layer_id,
            stream=stream,
            path=str(destination),
            display_name=stream_display_name(layer_id, stream),
        )
        self._write_sidecar(destination, asset)
        with self._lock:
            self._streams[(layer_id, stream)] = asset
        return asset

    def store_layer_blend(self, layer_id: int, path: str) -> MediaAsset:
        asset_id = str(uuid.uuid4())
        destination = self._copy_into(path, self.blends_dir, f"layer_{layer_id}_blend", asset_id)
        asset = MediaAsset(
            id=asset_id,
            kind=AssetKind.LAYER_BLEND,
            layer_id=layer_id,
            path=str(destination),
            display_name=layer_blend_display_name(layer_id),
        )
        self._write_sidecar(destination, asset)
        with self._lock:
            self._layers[layer_id] = asset
        return asset

    def store_master_blend(self, path: str) -> MediaAsset:
        asset_id = str(uuid.uuid4())
        destination = self._copy_into(path, self.blends_dir, "master_blend", asset_id)
        asset = MediaAsset(
            id=asset_id,
            kind=AssetKind.MASTER_BLEND,
            path=str(destination),
            display_name=MASTER_BLEND_DISPLAY_NAME,
        )
        self._write_sidecar(destination, asset)
        with self._lock:
            self._master = asset
        return asset

    # ------------------------------------------------------------------

    def _copy_into(self, source: str, directory: Path, stem: str, asset_id: str) -> Path:
        source_path = Path(source)
        if not source_path.is_file():
            raise StorageError(f"Rendered output does not exist: {source}")

        stamp = int(time.time() * 1000)
        destination = directory / f"{stem}_{stamp}_{asset_id[:8]}{source_path.suffix or '.gif'}"
        if source_path.resolve() == destination.resolve():
            return destination
        try:
            shutil.copy2(source_path, destination)
        except OSError as e:
            raise StorageError(f"Cannot copy {source} into media store: {e}") from e
        logger.debug(f"[MediaStore] Stored {source} as {destination}")
        return destination

    def _write_sidecar(self, target: Path, asset: MediaAsset) -> None:
        sidecar = target.with_suffix(".json")
        try:
            sidecar.write_text(asset.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write metadata for {target}: {e}") from e

    def _load_existing(self) -> None:
        loaded: List[MediaAsset] = []
        for directory in (self.streams_dir, self.blends_dir):
            for sidecar in sorted(directory.glob("*.json")):
                try:
                    loaded.append(MediaAsset.model_validate_json(sidecar.read_text(encoding="utf-8")))
                except (OSError, ValidationError) as e:
                    logger.warning(f"[MediaStore] Skipping unreadable sidecar {sidecar}: {e}")

        # Latest recording wins per slot
        for asset in sorted(loaded, key=lambda a: a.recorded_at):
            if asset.kind == AssetKind.STREAM and asset.layer_id is not None and asset.stream is not None:
                self._streams[(asset.layer_id, asset.stream)] = asset
            elif asset.kind == AssetKind.LAYER_BLEND and asset.layer_id is not None:
                self._layers[asset.layer_id] = asset
            elif asset.kind == AssetKind.MASTER_BLEND:
                self._master = asset

        if loaded:
            logger.info(f"[MediaStore] Reloaded {len(loaded)} asset(s) from {self.root}")
