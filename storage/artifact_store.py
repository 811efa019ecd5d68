"""Storage for the persisted events artifact."""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

import boto3
from botocore.exceptions import ClientError

from processor.models import MergedEvent

logger = logging.getLogger(__name__)

ARTIFACT_MODE = 0o644


def build_document(events: List[MergedEvent], updated_at: datetime) -> dict:
    """
    Build the artifact document.

    Args:
        events: Merged events in listing order
        updated_at: Cycle timestamp

    Returns:
        Dictionary with updatedAt and events keys
    """
    return {
        'updatedAt': updated_at.isoformat(),
        'events': [event.to_item() for event in events]
    }


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


class ArtifactStore(ABC):
    """Single-writer store that replaces the whole artifact on each write."""

    @abstractmethod
    def write(self, events: List[MergedEvent], updated_at: datetime) -> None:
        """Replace the artifact with a new batch."""

    @abstractmethod
    def read(self) -> Optional[dict]:
        """Return the current artifact document, or None if none exists."""


class LocalArtifactStore(ArtifactStore):
    """Artifact kept as a JSON file, swapped in with an atomic rename."""

    def __init__(self, path: str):
        """
        Initialize the local store.

        Args:
            path: Target JSON file path
        """
        self.path = path
        logger.info(f"Initialized LocalArtifactStore at: {path}")

    def write(self, events: List[MergedEvent], updated_at: datetime) -> None:
        """
        Write events to a temp file beside the target and rename it over.

        Readers never see a half-written file. On failure the temp file is
        removed and the previous artifact stays in place.

        Raises:
            OSError: If the file cannot be written or renamed
        """
        document = build_document(events, updated_at)
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            prefix='.events-', suffix='.json.tmp', dir=directory
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as tmp_file:
                json.dump(document, tmp_file, indent=2, ensure_ascii=False)
                tmp_file.flush()
                # mkstemp creates 0600
                os.fchmod(tmp_file.fileno(), ARTIFACT_MODE & ~_current_umask())
                os.fsync(tmp_file.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info(f"Wrote {len(events)} events to {self.path}")

    def read(self) -> Optional[dict]:
        if not os.path.exists(self.path):
            return None
        with open(self.path, encoding='utf-8') as f:
            return json.load(f)


class S3ArtifactStore(ArtifactStore):
    """Artifact kept as an S3 object; each put replaces it atomically."""

    def __init__(self, bucket: str, key: str = 'events.json', s3_client=None):
        """
        Initialize S3 client and object location.

        Args:
            bucket: Bucket name
            key: Object key
            s3_client: Prebuilt boto3 S3 client (defaults to a new one)
        """
        self.bucket = bucket
        self.key = key
        self.s3 = s3_client or boto3.client('s3')
        logger.info(f"Initialized S3ArtifactStore for s3://{bucket}/{key}")

    def write(self, events: List[MergedEvent], updated_at: datetime) -> None:
        """
        Upload the artifact document.

        Raises:
            ClientError: If the upload fails
        """
        body = json.dumps(
            build_document(events, updated_at), indent=2, ensure_ascii=False
        ).encode('utf-8')

        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=body,
                ContentType='application/json',
                CacheControl='no-cache'
            )
        except ClientError as e:
            logger.error(f"Error uploading artifact to s3://{self.bucket}/{self.key}: {e}")
            raise

        logger.info(f"Wrote {len(events)} events to s3://{self.bucket}/{self.key}")

    def read(self) -> Optional[dict]:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=self.key)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                return None
            logger.error(f"Error reading artifact from s3://{self.bucket}/{self.key}: {e}")
            raise
        return json.loads(response['Body'].read())


def create_store(config) -> ArtifactStore:
    """
    Choose the artifact store for a configuration.

    Args:
        config: SyncConfig

    Returns:
        S3ArtifactStore when a bucket is configured, else LocalArtifactStore
    """
    if config.artifact_bucket:
        return S3ArtifactStore(config.artifact_bucket, config.artifact_key)
    return LocalArtifactStore(config.artifact_path)
