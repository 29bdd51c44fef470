from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.storage.blob import BlobBlock, ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from .errors import (
    BlobNotFoundError,
    CommitError,
    ContainerNotFoundError,
    TransferError,
)
from .storage_protocols import (
    AsyncBlobHandle,
    AsyncContainerHandle,
    AsyncStorageAdapter,
    BlobProperties,
    Capability,
)

# Status codes meaning the request itself was refused, so retrying is pointless.
_FATAL_STATUS = {400, 403, 404, 409, 411, 413, 416}


class AzureBlobAdapter(AsyncStorageAdapter):
    """
    Azure Blob Storage adapter.

    Azure does not persist Content-Disposition through a block list commit
    and has no per-blob Expires header, so neither capability is advertised.
    """

    capabilities: frozenset[Capability] = frozenset()

    def __init__(self, blob_service_client: BlobServiceClient):
        """
        Create an adapter from an existing BlobServiceClient.
        This allows custom authentication and configuration.
        """
        self._client = blob_service_client

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "AzureBlobAdapter":
        """
        Convenience builder: create adapter from a connection string.
        """
        client = BlobServiceClient.from_connection_string(connection_string)
        return cls(client)

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        return _AzureContainerHandle(self._client.get_container_client(container_name))

    async def close(self) -> None:
        await self._client.close()


class _AzureContainerHandle(AsyncContainerHandle):
    def __init__(self, container_client):
        self._container_client = container_client

    def get_blob(self, blob_name: str) -> AsyncBlobHandle:
        return _AzureBlobHandle(self._container_client.get_blob_client(blob_name))

    async def exists(self) -> bool:
        return await self._container_client.exists()

    async def create(self) -> bool:
        try:
            await self._container_client.create_container()
            return True
        except ResourceExistsError:
            return False

    async def list_blob_names(self, prefix: str = "") -> list[str]:
        names: list[str] = []
        async for blob in self._container_client.list_blobs(name_starts_with=prefix):
            names.append(blob.name)
        return names


def _content_settings(
    content_type: str | None, content_disposition: str | None
) -> ContentSettings:
    return ContentSettings(
        content_type=content_type or "application/octet-stream",
        content_disposition=content_disposition,
    )


class _AzureBlobHandle(AsyncBlobHandle):
    def __init__(self, blob_client):
        self._blob_client = blob_client

    @property
    def _name(self) -> str:
        return self._blob_client.blob_name

    async def download(self) -> bytes:
        try:
            stream = await self._blob_client.download_blob()
            return await stream.readall()
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob '{self._name}' not found")

    async def upload(
        self,
        data: bytes,
        metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        try:
            response = await self._blob_client.upload_blob(
                data,
                overwrite=True,
                metadata=metadata or None,
                content_settings=_content_settings(content_type, content_disposition),
            )
        except ResourceNotFoundError:
            raise ContainerNotFoundError(
                f"Container '{self._blob_client.container_name}' not found"
            )
        return response["etag"]

    async def stage_block(self, block_id: str, data: bytes) -> None:
        try:
            await self._blob_client.stage_block(block_id, data, length=len(data))
        except (ServiceRequestError, ServiceResponseError, ClientAuthenticationError) as e:
            raise TransferError(f"Staging block {block_id} of '{self._name}' failed: {e}") from e
        except HttpResponseError as e:
            status = getattr(e, "status_code", None)
            raise TransferError(
                f"Store rejected block {block_id} of '{self._name}' (HTTP {status}): {e}",
                retryable=status not in _FATAL_STATUS,
            ) from e

    async def commit_block_list(
        self,
        block_ids: list[str],
        metadata: dict[str, str] | None = None,
        content_type: str | None = None,
        content_disposition: str | None = None,
    ) -> str:
        try:
            response = await self._blob_client.commit_block_list(
                [BlobBlock(block_id=block_id) for block_id in block_ids],
                metadata=metadata or None,
                content_settings=_content_settings(content_type, content_disposition),
            )
        except (HttpResponseError, ServiceRequestError, ServiceResponseError) as e:
            raise CommitError(f"Commit of '{self._name}' failed: {e}") from e
        return response["etag"]

    async def delete(self) -> None:
        try:
            await self._blob_client.delete_blob()
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob '{self._name}' not found")

    async def get_properties(self) -> BlobProperties:
        try:
            props = await self._blob_client.get_blob_properties()
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob '{self._name}' not found")
        settings = props.content_settings
        return BlobProperties(
            name=props.name,
            etag=props.etag,
            size=props.size,
            user_metadata=dict(props.metadata or {}),
            content_type=settings.content_type if settings else None,
            content_disposition=settings.content_disposition if settings else None,
        )
