"""
asyncblockupload
================

Async block-blob uploads: payloads are split into bounded blocks, staged
concurrently and committed as an ordered block list, backed by local
filesystem or Azure Blob Storage.

Main entry points:
- AsyncBlobStore: the store class, with put_blob / blob_metadata
- PutOptions, UploadStrategy: single-shot vs multipart selection
- UploadConfig: block size, concurrency window and retry tunables
- BytesSource, FileSource, StreamSource: payload sources
- LocalFileAdapter, AzureBlobAdapter: storage backends
- UploadError, SplitError, TransferError, CommitError, UnsupportedFeatureError

Example:
    from asyncblockupload import AsyncBlobStore, LocalFileAdapter, PutOptions

    async with AsyncBlobStore(LocalFileAdapter("./data")) as store:
        etag = await store.put_blob(
            "container", "big.bin", "./big.bin", PutOptions.multipart()
        )
"""

from .async_blob_store import (
    AsyncBlobStore,
    PutOptions,
    UploadStrategy,
    resolve_strategy,
)
from .commit import BlockListCommitter
from .config import MAX_BLOCK_COUNT, MAX_BLOCK_SIZE, MAX_SINGLE_PUT_SIZE, UploadConfig
from .errors import (
    BlobNotFoundError,
    BlobStoreError,
    CommitError,
    ContainerNotFoundError,
    SplitError,
    TransferError,
    UnsupportedFeatureError,
    UploadError,
)
from .orchestrator import MultipartUploader, UploadSession
from .sources import ByteSource, BytesSource, FileSource, StreamSource, as_byte_source
from .splitter import Block, block_id_for, split_blocks
from .storage_protocols import (
    AsyncBlobHandle,
    AsyncContainerHandle,
    AsyncStorageAdapter,
    BlobProperties,
    Capability,
)
from .uploader import BlockUploader
from .local_file_adapter import LocalFileAdapter
from .azure_blob_adapter import AzureBlobAdapter

import importlib.metadata

try:
    __version__ = importlib.metadata.version(__name__)
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AsyncBlobStore",
    "PutOptions",
    "UploadStrategy",
    "resolve_strategy",
    "BlockListCommitter",
    "MAX_BLOCK_COUNT",
    "MAX_BLOCK_SIZE",
    "MAX_SINGLE_PUT_SIZE",
    "UploadConfig",
    "BlobNotFoundError",
    "BlobStoreError",
    "CommitError",
    "ContainerNotFoundError",
    "SplitError",
    "TransferError",
    "UnsupportedFeatureError",
    "UploadError",
    "MultipartUploader",
    "UploadSession",
    "ByteSource",
    "BytesSource",
    "FileSource",
    "StreamSource",
    "as_byte_source",
    "Block",
    "block_id_for",
    "split_blocks",
    "AsyncBlobHandle",
    "AsyncContainerHandle",
    "AsyncStorageAdapter",
    "BlobProperties",
    "Capability",
    "BlockUploader",
    "LocalFileAdapter",
    "AzureBlobAdapter",
]
