import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .commit import guess_content_type, persisted_content_disposition
from .config import UploadConfig
from .errors import UnsupportedFeatureError
from .orchestrator import MultipartUploader
from .sources import ByteSource, as_byte_source
from .splitter import read_full
from .storage_protocols import AsyncStorageAdapter, BlobProperties, Capability

logger = logging.getLogger(__name__)


class UploadStrategy(Enum):
    SINGLE_SHOT = "single_shot"  # One request carrying the whole payload
    MULTIPART = "multipart"  # Staged blocks + block list commit


@dataclass(frozen=True)
class PutOptions:
    strategy: UploadStrategy | None = None  # None: pick by payload length
    expires: datetime | None = None
    content_type: str | None = None
    content_disposition: str | None = None

    @classmethod
    def multipart(cls, **kwargs) -> "PutOptions":
        return cls(strategy=UploadStrategy.MULTIPART, **kwargs)

    @classmethod
    def single_shot(cls, **kwargs) -> "PutOptions":
        return cls(strategy=UploadStrategy.SINGLE_SHOT, **kwargs)


def resolve_strategy(
    options: PutOptions, length: int | None, config: UploadConfig
) -> UploadStrategy:
    """
    Pick the upload strategy for one put.

    An explicit single-shot request must have a known length within
    ``config.max_single_put_size``, otherwise ``ValueError`` is raised.
    """
    if options.strategy is UploadStrategy.MULTIPART:
        return UploadStrategy.MULTIPART
    if options.strategy is UploadStrategy.SINGLE_SHOT:
        if length is None:
            raise ValueError("Single-shot put needs a payload with a known length")
        if length > config.max_single_put_size:
            raise ValueError(
                f"Payload of {length} bytes exceeds single-shot limit of "
                f"{config.max_single_put_size} bytes, use multipart"
            )
        return UploadStrategy.SINGLE_SHOT
    if length is None or length > config.multipart_threshold:
        return UploadStrategy.MULTIPART
    return UploadStrategy.SINGLE_SHOT


class AsyncBlobStore:
    """
    Blob store client for one backing store.

    ``put_blob`` accepts bytes, a file path, a binary stream or a
    ``ByteSource`` and returns the ETag of the stored blob.
    """

    def __init__(
        self, adapter: AsyncStorageAdapter, config: UploadConfig | None = None
    ) -> None:
        self.adapter = adapter
        self.config = config or UploadConfig()
        self.multipart = MultipartUploader(adapter, self.config)

    async def __aenter__(self) -> "AsyncBlobStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.adapter.close()

    async def create_container(self, container_name: str) -> bool:
        """Create the container if missing. Returns True if it was created."""
        return await self.adapter.get_container(container_name).create()

    async def container_exists(self, container_name: str) -> bool:
        return await self.adapter.get_container(container_name).exists()

    def _check_capabilities(self, options: PutOptions) -> None:
        if options.expires is not None and Capability.EXPIRY not in self.adapter.capabilities:
            raise UnsupportedFeatureError(
                "expires", "Expiry timestamps are not supported by this store"
            )

    async def put_blob(
        self,
        container_name: str,
        blob_name: str,
        payload,
        options: PutOptions | None = None,
        user_metadata: dict[str, str] | None = None,
        length: int | None = None,
    ) -> str:
        options = options or PutOptions()
        self._check_capabilities(options)
        source = as_byte_source(payload, length)
        strategy = resolve_strategy(options, source.length, self.config)
        logger.debug("Putting '%s/%s' with %s strategy", container_name, blob_name, strategy.value)

        if strategy is UploadStrategy.MULTIPART:
            return await self.multipart.put_multipart(
                container_name,
                blob_name,
                source,
                user_metadata,
                content_type=options.content_type,
                content_disposition=options.content_disposition,
            )
        return await self._put_single_shot(
            container_name, blob_name, source, options, user_metadata
        )

    async def _put_single_shot(
        self,
        container_name: str,
        blob_name: str,
        source: ByteSource,
        options: PutOptions,
        user_metadata: dict[str, str] | None,
    ) -> str:
        with source.open() as stream:
            data = await asyncio.to_thread(read_full, stream, source.length)
        if len(data) != source.length:
            raise ValueError(
                f"Payload ended at {len(data)} bytes, expected {source.length}"
            )
        blob = self.adapter.get_container(container_name).get_blob(blob_name)
        return await blob.upload(
            data,
            metadata=dict(user_metadata or {}),
            content_type=options.content_type or guess_content_type(blob_name),
            content_disposition=persisted_content_disposition(
                self.adapter, blob_name, options.content_disposition
            ),
        )

    async def blob_metadata(self, container_name: str, blob_name: str) -> BlobProperties:
        return await self.adapter.get_container(container_name).get_blob(blob_name).get_properties()

    async def get_blob_bytes(self, container_name: str, blob_name: str) -> bytes:
        return await self.adapter.get_container(container_name).get_blob(blob_name).download()

    async def delete_blob(self, container_name: str, blob_name: str) -> None:
        await self.adapter.get_container(container_name).get_blob(blob_name).delete()

    async def list_blob_names(self, container_name: str, prefix: str = "") -> list[str]:
        return await self.adapter.get_container(container_name).list_blob_names(prefix)
