import asyncio
import logging
from dataclasses import dataclass, field

from .commit import BlockListCommitter
from .config import UploadConfig
from .errors import UploadError
from .sources import ByteSource
from .splitter import Block, split_blocks
from .storage_protocols import AsyncStorageAdapter
from .uploader import BlockUploader

logger = logging.getLogger(__name__)


@dataclass
class UploadSession:
    """State of one multipart upload. Only the orchestrator coroutine mutates it."""

    container_name: str
    blob_name: str
    user_metadata: dict[str, str] = field(default_factory=dict)
    block_list: list[str] = field(default_factory=list)
    staged: dict[int, str] = field(default_factory=dict)

    def record(self, index: int, block_id: str) -> None:
        self.staged[index] = block_id

    def ordered_block_list(self) -> list[str]:
        indices = sorted(self.staged)
        if indices != list(range(len(indices))):
            raise UploadError(
                f"Block indices are not contiguous: {indices}",
                staged_blocks=len(indices),
            )
        return [self.staged[i] for i in indices]


class MultipartUploader:
    """
    Drives split -> stage -> commit for one blob at a time.

    Up to ``config.max_in_flight`` blocks are staged concurrently. The source
    is not read further while that window is full, so at most that many
    blocks are held in memory. Nothing becomes visible unless every block
    was staged and the commit succeeded.
    """

    def __init__(
        self,
        adapter: AsyncStorageAdapter,
        config: UploadConfig | None = None,
        uploader: BlockUploader | None = None,
        committer: BlockListCommitter | None = None,
    ) -> None:
        self.config = config or UploadConfig()
        self.uploader = uploader or BlockUploader(adapter, self.config)
        self.committer = committer or BlockListCommitter(adapter)

    async def put_multipart(
        self,
        container_name: str,
        blob_name: str,
        source: ByteSource,
        user_metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        session = UploadSession(container_name, blob_name, dict(user_metadata or {}))
        logger.info(
            "Starting multipart upload of '%s/%s' (%s bytes)",
            container_name,
            blob_name,
            "unknown" if source.length is None else source.length,
        )

        with source.open() as stream:
            blocks = split_blocks(
                stream,
                self.config.max_block_size,
                length=source.length,
                max_block_count=self.config.max_block_count,
            )
            await self._stage_all(session, blocks)

        session.block_list = session.ordered_block_list()
        return await self.committer.commit(
            container_name,
            blob_name,
            session.block_list,
            session.user_metadata,
            content_type=content_type,
            content_disposition=content_disposition,
        )

    async def _stage_one(self, session: UploadSession, block: Block) -> tuple[int, str]:
        block_id = await self.uploader.upload(session.container_name, session.blob_name, block)
        return block.index, block_id

    async def _stage_all(self, session: UploadSession, blocks) -> None:
        pending: set[asyncio.Task] = set()

        async def collect(return_when: str) -> None:
            done, still_pending = await asyncio.wait(pending, return_when=return_when)
            pending.clear()
            pending.update(still_pending)
            failure: BaseException | None = None
            for task in done:
                if task.exception() is not None:
                    failure = failure or task.exception()
                    continue
                session.record(*task.result())
            if failure is not None:
                raise failure

        read: asyncio.Future | None = None
        try:
            while True:
                while len(pending) >= self.config.max_in_flight:
                    await collect(asyncio.FIRST_COMPLETED)
                # Shielded so a cancelled caller can still wait for the worker
                # thread to finish with the stream.
                read = asyncio.ensure_future(asyncio.to_thread(next, blocks, None))
                block = await asyncio.shield(read)
                if block is None:
                    break
                pending.add(asyncio.create_task(self._stage_one(session, block)))
            while pending:
                await collect(asyncio.FIRST_EXCEPTION)
        except BaseException as e:
            for task in pending:
                task.cancel()
            if read is not None and not read.done():
                await asyncio.wait({read})
            if read is not None and not read.cancelled():
                read.exception()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                if not task.cancelled() and task.exception() is None:
                    session.record(*task.result())
            if isinstance(e, UploadError):
                e.staged_blocks = len(session.staged)
            logger.error(
                "Aborting upload of '%s/%s' after %d staged block(s): %s",
                session.container_name,
                session.blob_name,
                len(session.staged),
                e,
            )
            raise
        finally:
            blocks.close()
