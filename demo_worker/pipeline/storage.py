"""
Object storage for pipeline artifacts.

Narration audio is stored under:
  audio/{project_id}/{attempt_id}.mp3

Two backends share one interface, ``store(key, data, content_type) -> url``:
Supabase Storage (default bucket ``demo-assets``) and Cloudflare R2 over the
S3 API.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from supabase import Client

from ..config import WorkerConfig
from ..errors import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────────

def audio_key(project_id: str, attempt_id: str) -> str:
    """Key for a run's narration audio; unique per project and attempt."""
    return f"audio/{project_id}/{attempt_id}.mp3"


class SupabaseAssetStorage:
    """Supabase Storage bucket with public URLs."""

    def __init__(self, client: Client, bucket: str):
        self._sb = client
        self._bucket = bucket

    async def store(self, key: str, data: bytes, content_type: str = "audio/mpeg") -> str:
        try:
            bucket = self._sb.storage.from_(self._bucket)
            bucket.upload(key, data, {"content-type": content_type, "upsert": "false"})
            public_url = bucket.get_public_url(key)
        except Exception as e:
            logger.error(f"Supabase upload failed for key={key}: {e}")
            raise StorageError(f"Upload of {key} failed: {e}") from e

        logger.info(f"Uploaded to Supabase storage: {public_url}")
        return public_url


class R2AssetStorage:
    """Cloudflare R2 bucket, served from R2_PUBLIC_URL."""

    def __init__(self, config: WorkerConfig, s3_client=None):
        if not config.r2_public_url:
            raise ConfigurationError("R2_PUBLIC_URL must be set for the r2 storage backend")
        self._bucket = config.storage_bucket
        self._public_url = config.r2_public_url.rstrip("/")
        self._s3 = s3_client or boto3.client(
            "s3",
            endpoint_url=f"https://{config.r2_account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=config.r2_access_key_id,
            aws_secret_access_key=config.r2_secret_access_key,
            config=BotoConfig(signature_version="s3v4"),
            region_name="auto",
        )

    async def store(self, key: str, data: bytes, content_type: str = "audio/mpeg") -> str:
        try:
            self._s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except Exception as e:
            logger.error(f"R2 upload failed for key={key}: {e}")
            raise StorageError(f"Upload of {key} failed: {e}") from e

        public_url = f"{self._public_url}/{key}"
        logger.info(f"Uploaded to R2: {public_url}")
        return public_url


def build_storage(config: WorkerConfig, client: Optional[Client] = None):
    """Pick the storage backend named by config."""
    if config.storage_backend == "r2":
        return R2AssetStorage(config)
    if client is None:
        raise ConfigurationError("Supabase storage backend needs a Supabase client")
    return SupabaseAssetStorage(client, config.storage_bucket)
