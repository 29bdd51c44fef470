class BlobStoreError(Exception):
    """Base class for errors raised by asyncblockupload."""

    pass


class BlobNotFoundError(BlobStoreError):
    """Raised when a requested blob does not exist."""

    pass


class ContainerNotFoundError(BlobStoreError):
    """Raised when a requested container does not exist."""

    pass


class UnsupportedFeatureError(BlobStoreError):
    """Raised when a put asks for a feature the backing store cannot honour."""

    def __init__(self, feature: str, message: str | None = None) -> None:
        self.feature = feature
        super().__init__(message or f"'{feature}' is not supported by this store")


class UploadError(BlobStoreError):
    """
    A multipart upload failed and nothing was committed.

    ``staged_blocks`` counts the blocks that reached the store before the
    failure. Zero means nothing happened; anything else means staged data is
    left behind for the store to garbage-collect.
    """

    def __init__(self, message: str, staged_blocks: int = 0) -> None:
        super().__init__(message)
        self.staged_blocks = staged_blocks

    @property
    def orphaned_blocks(self) -> bool:
        return self.staged_blocks > 0


class SplitError(UploadError):
    """Raised when the byte source cannot be read or split into blocks."""

    pass


class TransferError(UploadError):
    """Raised when a single block could not be staged."""

    def __init__(
        self, message: str, retryable: bool = True, staged_blocks: int = 0
    ) -> None:
        super().__init__(message, staged_blocks=staged_blocks)
        self.retryable = retryable


class CommitError(UploadError):
    """Raised when the block list commit fails. Retrying means re-uploading."""

    pass
