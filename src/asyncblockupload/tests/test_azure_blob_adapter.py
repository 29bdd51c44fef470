import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)

from asyncblockupload import (
    AzureBlobAdapter,
    BlobNotFoundError,
    Block,
    BlockUploader,
    CommitError,
    TransferError,
    UploadConfig,
    block_id_for,
)
from asyncblockupload.azure_blob_adapter import _AzureBlobHandle


def http_error(status_code: int, cls=HttpResponseError) -> HttpResponseError:
    error = cls(message=f"HTTP {status_code}")
    error.status_code = status_code
    return error


class FakeBlobClient:
    """Stands in for azure.storage.blob.aio.BlobClient, raising a preset error."""

    blob_name = "const.txt"
    container_name = "test_container"

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.committed: list[str] | None = None

    async def stage_block(self, block_id, data, length=None):
        if self.error is not None:
            raise self.error

    async def commit_block_list(self, block_list, metadata=None, content_settings=None):
        if self.error is not None:
            raise self.error
        self.committed = [block.id for block in block_list]
        return {"etag": '"0x8DC0FFEE"'}

    async def get_blob_properties(self):
        raise self.error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, retryable",
    [
        (http_error(413), False),
        (http_error(400), False),
        (http_error(404), False),
        (http_error(500), True),
        (http_error(503), True),
        (http_error(401, ClientAuthenticationError), True),
        (ServiceRequestError(message="connection reset"), True),
        (ServiceResponseError(message="read timeout"), True),
    ],
)
async def test_stage_block_error_mapping(error, retryable):
    handle = _AzureBlobHandle(FakeBlobClient(error))
    with pytest.raises(TransferError) as excinfo:
        await handle.stage_block("AAAAAAAAAAA=", b"data")
    assert excinfo.value.retryable is retryable
    assert excinfo.value.__cause__ is error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        http_error(400),
        http_error(503),
        ServiceRequestError(message="connection reset"),
    ],
)
async def test_commit_errors_become_commit_error(error):
    handle = _AzureBlobHandle(FakeBlobClient(error))
    with pytest.raises(CommitError):
        await handle.commit_block_list(["AAAAAAAAAAA="], metadata={"foo": "bar"})


@pytest.mark.asyncio
async def test_commit_returns_etag_in_block_order():
    client = FakeBlobClient()
    handle = _AzureBlobHandle(client)
    etag = await handle.commit_block_list(["AAAAAAAAAAA=", "AAAAAAAAAAE="])
    assert etag == '"0x8DC0FFEE"'
    assert client.committed == ["AAAAAAAAAAA=", "AAAAAAAAAAE="]


@pytest.mark.asyncio
async def test_missing_blob_properties():
    handle = _AzureBlobHandle(FakeBlobClient(ResourceNotFoundError(message="gone")))
    with pytest.raises(BlobNotFoundError):
        await handle.get_properties()


class FlakyBlobClient(FakeBlobClient):
    """Fails the first ``failures`` stage calls, then succeeds."""

    def __init__(self, error: Exception, failures: int):
        super().__init__()
        self.stage_error = error
        self.failures = failures
        self.stage_calls = 0

    async def stage_block(self, block_id, data, length=None):
        self.stage_calls += 1
        if self.stage_calls <= self.failures:
            raise self.stage_error


class FakeContainerClient:
    def __init__(self, blob_client):
        self.blob_client = blob_client

    def get_blob_client(self, blob_name):
        return self.blob_client


class FakeServiceClient:
    def __init__(self, blob_client):
        self.blob_client = blob_client

    def get_container_client(self, container_name):
        return FakeContainerClient(self.blob_client)


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, calls, succeeds", [(503, 2, True), (413, 1, False)])
async def test_uploader_retries_by_status(status_code, calls, succeeds):
    client = FlakyBlobClient(http_error(status_code), failures=1)
    adapter = AzureBlobAdapter(FakeServiceClient(client))
    uploader = BlockUploader(adapter, UploadConfig(retry_backoff=0))
    block = Block(index=0, block_id=block_id_for(0), offset=0, data=b"data")

    if succeeds:
        assert await uploader.upload("test_container", "const.txt", block) == block.block_id
    else:
        with pytest.raises(TransferError) as excinfo:
            await uploader.upload("test_container", "const.txt", block)
        assert excinfo.value.retryable is False
    assert client.stage_calls == calls
