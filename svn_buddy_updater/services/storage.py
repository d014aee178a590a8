import asyncio
import logging
from pathlib import Path
from typing import Any, Protocol, Sequence
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from svn_buddy_updater.exceptions import StorageError
from svn_buddy_updater.settings.sync import StorageSettings
from svn_buddy_updater.utils import chunked

logger = logging.getLogger(__name__)

__all__ = ("ArtifactStore", "S3ArtifactStore")


class ArtifactStore(Protocol):
    async def upload(self, files: Sequence[Path], destination_prefix: str) -> list[str]:
        pass

    async def delete_by_keys(self, keys: Sequence[str]) -> None:
        pass


class S3ArtifactStore(ArtifactStore):
    """
    Artifacts' bucket on S3 (or S3-compatible storage).
    boto3 calls are blocking, so they are executed in worker threads.
    """

    def __init__(self, settings: StorageSettings, client: Any | None = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            logger.debug("[S3] Creating client (region: %s)", self.settings.region or "default")
            self._client = boto3.client(
                "s3",
                region_name=self.settings.region,
                endpoint_url=self.settings.endpoint_url,
                config=Config(
                    connect_timeout=self.settings.connect_timeout,
                    read_timeout=self.settings.read_timeout,
                    retries={"max_attempts": 1},
                ),
            )

        return self._client

    def public_url(self, key: str) -> str:
        return f"{self.settings.base_url}/{quote(key)}"

    async def upload(self, files: Sequence[Path], destination_prefix: str) -> list[str]:
        """
        Uploads files as `<destination_prefix>/<file name>` (publicly readable)

        :return: public URLs in the same order as the given files
        :raises StorageError: any upload failed (already uploaded objects are kept)
        """
        urls: list[str] = []
        prefix = destination_prefix.strip("/")
        for file_path in files:
            key = f"{prefix}/{file_path.name}"
            logger.info("[S3] Uploading %s -> s3://%s/%s", file_path, self.settings.bucket, key)
            try:
                await asyncio.to_thread(
                    self.client.upload_file,
                    str(file_path),
                    self.settings.bucket,
                    key,
                    ExtraArgs={"ACL": self.settings.acl},
                )
            except (BotoCoreError, ClientError, OSError) as exc:
                logger.error("[S3] Failed to upload %s: %r", file_path, exc)
                raise StorageError(f"Unable to upload {file_path.name} to {key}: {exc}") from exc

            urls.append(self.public_url(key))

        return urls

    async def delete_by_keys(self, keys: Sequence[str]) -> None:
        """
        Deletes objects in batches (S3 accepts up to 1000 keys per request)

        :raises StorageError: a batch was rejected or some objects weren't deleted
        """
        for batch in chunked(list(keys), self.settings.delete_batch_size):
            logger.info("[S3] Deleting %i objects: %r", len(batch), batch)
            try:
                response = await asyncio.to_thread(
                    self.client.delete_objects,
                    Bucket=self.settings.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except (BotoCoreError, ClientError) as exc:
                logger.error("[S3] Failed to delete objects: %r", exc)
                raise StorageError(f"Unable to delete objects: {exc}") from exc

            if errors := response.get("Errors"):
                failed = {error.get("Key"): error.get("Message") for error in errors}
                logger.error("[S3] Some objects weren't deleted: %r", failed)
                raise StorageError(f"Unable to delete objects: {failed}")
