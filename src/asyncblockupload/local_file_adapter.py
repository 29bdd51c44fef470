import asyncio
import hashlib
import json
import os
import shutil
import tempfile
from pathlib import Path

from .errors import BlobNotFoundError, CommitError, TransferError
from .storage_protocols import (
    AsyncBlobHandle,
    AsyncContainerHandle,
    AsyncStorageAdapter,
    BlobProperties,
    Capability,
)

# Internal directories inside a container, hidden from listings.
_STAGING_DIR = ".staging"
_PROPERTIES_DIR = ".properties"
_RESERVED_DIRS = (_STAGING_DIR, _PROPERTIES_DIR)

_COPY_BUFSIZE = 1024 * 1024


def _ensure_within(base: Path, target: Path, strict: bool = True) -> Path:
    """
    Resolve target path and ensure it is inside base path.
    strict=True will fail if the target does not exist (good for read/delete).
    strict=False allows non-existing targets (good for upload), but still checks parent dir strictly.
    """
    base_resolved = base.resolve(strict=True)
    if strict:
        target_resolved = target.resolve(strict=True)
    else:
        # Resolve parent strictly to catch symlink escapes
        target.parent.resolve(strict=True)
        target_resolved = target.resolve()
    if not target_resolved.is_relative_to(base_resolved):
        raise ValueError(
            f"Path {target_resolved} escapes base directory {base_resolved}"
        )
    return target_resolved


def _blob_key(blob_name: str) -> str:
    return hashlib.sha256(blob_name.encode("utf-8")).hexdigest()


class LocalFileAdapter(AsyncStorageAdapter):
    """
    Local filesystem adapter.

    Staged blocks live under ``<container>/.staging/<blob key>/`` until a
    block list commit concatenates them into the blob file. Properties and
    user metadata are kept in a JSON sidecar under ``.properties``.
    """

    capabilities: frozenset[Capability] = frozenset({Capability.CONTENT_DISPOSITION})

    def __init__(self, base_path: str):
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        container_path = _ensure_within(
            self._base_path, self._base_path / container_name, strict=False
        )
        return _LocalContainerHandle(container_path)

    async def close(self) -> None:
        pass


class _LocalContainerHandle(AsyncContainerHandle):
    def __init__(self, container_path: Path):
        self._container_path = container_path

    def get_blob(self, blob_name: str) -> AsyncBlobHandle:
        parts = Path(blob_name).parts
        if parts and parts[0] in _RESERVED_DIRS:
            raise ValueError(f"Blob name '{blob_name}' uses a reserved directory")
        # Create on first use, like a store with implicit containers.
        self._container_path.mkdir(parents=True, exist_ok=True)
        blob_path = _ensure_within(
            self._container_path, self._container_path / blob_name, strict=False
        )
        return _LocalBlobHandle(blob_path, self._container_path, blob_name)

    async def exists(self) -> bool:
        return self._container_path.is_dir()

    async def create(self) -> bool:
        if self._container_path.is_dir():
            return False
        self._container_path.mkdir(parents=True)
        return True

    async def list_blob_names(self, prefix: str = "") -> list[str]:
        files: list[str] = []
        if not self._container_path.is_dir():
            return files
        for path in self._container_path.rglob("*"):
            if path.is_file():
                # Strict resolve to catch symlink escapes
                _ensure_within(self._container_path, path, strict=True)
                rel = path.relative_to(self._container_path)
                if rel.parts[0] in _RESERVED_DIRS:
                    continue
                rel_path = rel.as_posix()
                if rel_path.startswith(prefix):
                    files.append(rel_path)
        return files


# Global lock registry for concurrency safety
_lock_registry: dict[str, asyncio.Lock] = {}


def _get_global_lock(path: Path) -> asyncio.Lock:
    key = str(path.resolve())
    if key not in _lock_registry:
        _lock_registry[key] = asyncio.Lock()
    return _lock_registry[key]


class _LocalBlobHandle(AsyncBlobHandle):
    def __init__(self, file_path: Path, container_path: Path, blob_name: str):
        self._file_path = file_path
        self._container_path = container_path
        self._blob_name = blob_name
        key = _blob_key(blob_name)
        self._staging_path = container_path / _STAGING_DIR / key
        self._properties_path = container_path / _PROPERTIES_DIR / f"{key}.json"
        self._lock = _get_global_lock(file_path)

    def _block_path(self, block_id: str) -> Path:
        # Base64 ids may contain '/', so store them hex-encoded.
        return self._staging_path / block_id.encode("utf-8").hex()

    async def download(self) -> bytes:
        if not self._file_path.exists():
            raise BlobNotFoundError(f"Blob '{self._blob_name}' not found")
        _ensure_within(self._container_path, self._file_path, strict=True)
        async with self._lock:
            return self._file_path.read_bytes()

    def _temp_file(self) -> Path:
        temp_dir = self._container_path / _STAGING_DIR
        temp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(dir=temp_dir, suffix=".tmp")
        os.close(fd)
        return Path(name)

    async def _publish(
        self,
        temp_path: Path,
        etag: str,
        metadata: dict[str, str] | None,
        content_type: str | None,
        content_disposition: str | None,
    ) -> None:
        """Move a fully written temp file into place and record its properties."""
        _ensure_within(self._container_path, self._file_path, strict=False)
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        self._properties_path.parent.mkdir(parents=True, exist_ok=True)
        properties = {
            "etag": etag,
            "metadata": dict(metadata or {}),
            "content_type": content_type,
            "content_disposition": content_disposition,
        }
        async with self._lock:
            os.replace(temp_path, self._file_path)
            self._properties_path.write_text(json.dumps(properties), encoding="utf-8")

    async def upload(
        self,
        data: bytes,
        metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        temp_path = self._temp_file()
        try:
            temp_path.write_bytes(data)
            etag = f'"{hashlib.md5(data).hexdigest()}"'
            await self._publish(temp_path, etag, metadata, content_type, content_disposition)
        finally:
            temp_path.unlink(missing_ok=True)
        return etag

    async def stage_block(self, block_id: str, data: bytes) -> None:
        try:
            self._staging_path.mkdir(parents=True, exist_ok=True)
            self._block_path(block_id).write_bytes(data)
        except OSError as e:
            raise TransferError(f"Staging block {block_id} of '{self._blob_name}' failed: {e}") from e

    async def commit_block_list(
        self,
        block_ids: list[str],
        metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        for block_id in block_ids:
            if not self._block_path(block_id).is_file():
                raise CommitError(f"Block '{block_id}' of '{self._blob_name}' is not staged")

        temp_path: Path | None = None
        try:
            # Blocks are copied one buffer at a time, never joined in memory.
            temp_path = self._temp_file()
            digest = hashlib.md5()
            with temp_path.open("wb") as target:
                for block_id in block_ids:
                    with self._block_path(block_id).open("rb") as source:
                        for chunk in iter(lambda: source.read(_COPY_BUFSIZE), b""):
                            digest.update(chunk)
                            target.write(chunk)
            etag = f'"{digest.hexdigest()}"'
            await self._publish(temp_path, etag, metadata, content_type, content_disposition)
            shutil.rmtree(self._staging_path, ignore_errors=True)
        except OSError as e:
            raise CommitError(f"Commit of '{self._blob_name}' failed: {e}") from e
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
        return etag

    async def delete(self) -> None:
        if not self._file_path.exists():
            raise BlobNotFoundError(f"Blob '{self._blob_name}' not found")
        _ensure_within(self._container_path, self._file_path, strict=True)
        self._file_path.unlink()
        self._properties_path.unlink(missing_ok=True)

    async def get_properties(self) -> BlobProperties:
        if not self._file_path.exists():
            raise BlobNotFoundError(f"Blob '{self._blob_name}' not found")
        _ensure_within(self._container_path, self._file_path, strict=True)
        async with self._lock:
            size = self._file_path.stat().st_size
            if self._properties_path.is_file():
                stored = json.loads(self._properties_path.read_text(encoding="utf-8"))
            else:
                stored = {"etag": f'"{hashlib.md5(self._file_path.read_bytes()).hexdigest()}"'}
        return BlobProperties(
            name=self._blob_name,
            etag=stored["etag"],
            size=size,
            user_metadata=stored.get("metadata", {}),
            content_type=stored.get("content_type"),
            content_disposition=stored.get("content_disposition"),
        )
