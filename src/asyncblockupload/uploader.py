import asyncio
import logging

from .config import UploadConfig
from .errors import TransferError
from .splitter import Block
from .storage_protocols import AsyncStorageAdapter

logger = logging.getLogger(__name__)


class BlockUploader:
    """
    Stages single blocks, retrying transient failures.

    Staging is idempotent per block id, so a retry sends the same bytes under
    the same id and simply overwrites whatever copy the store already holds.
    """

    def __init__(self, adapter: AsyncStorageAdapter, config: UploadConfig | None = None):
        self.adapter = adapter
        self.config = config or UploadConfig()

    @staticmethod
    async def _stage(blob, block: Block) -> None:
        try:
            await blob.stage_block(block.block_id, block.data)
        except TransferError:
            raise
        except Exception as e:
            # Unknown adapter failures are not known to be transient.
            raise TransferError(
                f"Staging block {block.index} failed: {e}", retryable=False
            ) from e

    async def upload(self, container_name: str, blob_name: str, block: Block) -> str:
        if block.length > self.config.max_block_size:
            raise TransferError(
                f"Block {block.index} is {block.length} bytes, limit is {self.config.max_block_size}",
                retryable=False,
            )

        blob = self.adapter.get_container(container_name).get_blob(blob_name)
        attempt = 1
        while True:
            try:
                await self._stage(blob, block)
                logger.debug(
                    "Staged block %d (%d bytes) of '%s/%s'",
                    block.index,
                    block.length,
                    container_name,
                    blob_name,
                )
                return block.block_id
            except TransferError as e:
                if not e.retryable or attempt >= self.config.max_attempts:
                    logger.error(
                        "Block %d of '%s/%s' failed after %d attempt(s): %s",
                        block.index,
                        container_name,
                        blob_name,
                        attempt,
                        e,
                    )
                    raise
                delay = self.config.retry_backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Block %d: transient error (attempt %d/%d), retrying in %.2fs: %s",
                    block.index,
                    attempt,
                    self.config.max_attempts,
                    delay,
                    e,
                )
                await asyncio.sleep(delay)
                attempt += 1
