import asyncio
from collections import Counter
from typing import Dict, Optional

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from app.config.settings import settings
from app.providers.retry import with_retry
from app.services.roster.interfaces import RequirementFileStore
from app.utils.errors import CollaboratorError, NetworkError
from app.utils.logging import get_logger

logger = get_logger()


def build_minio_client() -> Minio:
    return Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


class MinioRequirementFileStore(RequirementFileStore):
    """
    Requirement uploads laid out as `<prefix>/<record id>/<requirement type>/<file>`.

    A requirement type counts as submitted when its folder holds at least one file;
    empty folder placeholders are ignored.
    """

    def __init__(
        self,
        client: Optional[Minio] = None,
        bucket_name: Optional[str] = None,
        prefix: Optional[str] = None,
    ):
        self._client = client
        self.bucket_name = bucket_name or settings.MINIO_BUCKET_NAME
        self.prefix = (prefix if prefix is not None else settings.REQUIREMENTS_PREFIX).strip("/")

    @property
    def client(self) -> Minio:
        if self._client is None:
            self._client = build_minio_client()
        return self._client

    def folder_prefix(self, record_id: str) -> str:
        return f"{self.prefix}/{record_id}/" if self.prefix else f"{record_id}/"

    def _count_sync(self, record_id: str) -> Dict[str, int]:
        folder = self.folder_prefix(record_id)
        counts: Counter = Counter()
        for obj in self.client.list_objects(self.bucket_name, prefix=folder, recursive=True):
            if obj.is_dir or obj.object_name.endswith("/"):
                continue
            relative = obj.object_name[len(folder):]
            requirement_type, _, filename = relative.partition("/")
            if requirement_type and filename:
                counts[requirement_type] += 1
        return dict(counts)

    async def _list_once(self, record_id: str) -> Dict[str, int]:
        loop = asyncio.get_running_loop()
        try:
            # MinIO client is synchronous; run the listing in the thread pool
            return await loop.run_in_executor(None, self._count_sync, record_id)
        except S3Error as e:
            logger.error(f"MinIO listing failed for {record_id}: {e.code} {e.message}")
            raise CollaboratorError(f"Storage listing failed: {e.code}") from e
        except (Urllib3HTTPError, OSError) as e:
            raise NetworkError(f"Storage unreachable: {e}") from e

    async def list_submitted_types(self, record_id: str) -> Dict[str, int]:
        return await with_retry(
            lambda: self._list_once(record_id), f"Requirement listing for {record_id}"
        )
