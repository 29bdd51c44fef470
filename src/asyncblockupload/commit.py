import logging
import mimetypes

from .errors import CommitError
from .storage_protocols import AsyncStorageAdapter, Capability

logger = logging.getLogger(__name__)


def guess_content_type(blob_name: str) -> str:
    guessed, _ = mimetypes.guess_type(blob_name)
    return guessed or "application/octet-stream"


def persisted_content_disposition(
    adapter: AsyncStorageAdapter, blob_name: str, content_disposition: str | None
) -> str | None:
    """Return ``content_disposition`` if the store keeps it, else log and drop it."""
    if content_disposition is None:
        return None
    if Capability.CONTENT_DISPOSITION not in adapter.capabilities:
        logger.warning(
            "Content-Disposition is not persisted by this store, dropping it for '%s'",
            blob_name,
        )
        return None
    return content_disposition


class BlockListCommitter:
    """Materializes a blob from staged blocks and returns its ETag."""

    def __init__(self, adapter: AsyncStorageAdapter):
        self.adapter = adapter

    async def commit(
        self,
        container_name: str,
        blob_name: str,
        block_list: list[str],
        user_metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        content_disposition = persisted_content_disposition(
            self.adapter, blob_name, content_disposition
        )
        blob = self.adapter.get_container(container_name).get_blob(blob_name)
        try:
            etag = await blob.commit_block_list(
                list(block_list),
                metadata=dict(user_metadata or {}),
                content_type=content_type or guess_content_type(blob_name),
                content_disposition=content_disposition,
            )
        except CommitError as e:
            e.staged_blocks = len(block_list)
            raise
        except Exception as e:
            raise CommitError(
                f"Commit of '{container_name}/{blob_name}' failed: {e}",
                staged_blocks=len(block_list),
            ) from e

        logger.info(
            "Committed %d block(s) to '%s/%s' (etag %s)",
            len(block_list),
            container_name,
            blob_name,
            etag,
        )
        return etag
