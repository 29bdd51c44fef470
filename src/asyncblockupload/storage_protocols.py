from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class Capability(Enum):
    """Optional store features, advertised by each adapter."""

    EXPIRY = "expiry"  # Per-blob expiry timestamp
    CONTENT_DISPOSITION = "content_disposition"  # Persisted through block commit


@dataclass
class BlobProperties:
    name: str
    etag: str
    size: int
    user_metadata: dict[str, str] = field(default_factory=dict)
    content_type: str | None = None
    content_disposition: str | None = None


class AsyncBlobHandle(Protocol):
    """Represents a single blob in storage."""

    async def download(self) -> bytes:
        """Download blob contents as bytes."""
        ...

    async def upload(
        self,
        data: bytes,
        metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        """Upload bytes in one request. Returns the new ETag."""
        ...

    async def stage_block(self, block_id: str, data: bytes) -> None:
        """Stage one uncommitted block. Raises TransferError."""
        ...

    async def commit_block_list(
        self,
        block_ids: list[str],
        metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        """Materialize the blob from staged blocks, in order. Returns the new ETag."""
        ...

    async def delete(self) -> None:
        """Delete blob."""
        ...

    async def get_properties(self) -> BlobProperties:
        """Return blob properties. Raises BlobNotFoundError."""
        ...


class AsyncContainerHandle(Protocol):
    """Represents a container/bucket in storage."""

    def get_blob(self, blob_name: str) -> AsyncBlobHandle:
        """Return a handle to a blob."""
        ...

    async def exists(self) -> bool:
        """Return True if the container exists."""
        ...

    async def create(self) -> bool:
        """Create the container. Returns False if it already existed."""
        ...

    async def list_blob_names(self, prefix: str = "") -> list[str]:
        """List committed blob names in container."""
        ...


class AsyncStorageAdapter(Protocol):
    """Protocol for a storage backend adapter."""

    capabilities: frozenset[Capability]

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        """Return a handle to a container."""
        ...

    async def close(self) -> None:
        """Close any resources/connections."""
        ...
