"""Object storage for survey uploads using Apache Libcloud."""

import logging
import os
from pathlib import Path
from threading import Lock
from libcloud.storage.types import Provider
from libcloud.storage.providers import get_driver
from requests.exceptions import RequestException
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)
from shared.utils import compute_file_hash, guess_content_type, unique_object_name


logger = logging.getLogger(__name__)


class StorageNotConfiguredError(RuntimeError):
    """Raised when uploads are attempted without bucket credentials."""
    pass


class CloudStorageService:
    """Uploads survey files to a public bucket and returns their URLs."""

    PROVIDERS = {
        'gcs': Provider.GOOGLE_STORAGE,
        's3': Provider.S3,
        'minio': Provider.S3,
        'azure': Provider.AZURE_BLOBS,
    }

    def __init__(self):
        """Initialize the storage service from environment variables."""
        self.provider_name = os.getenv('CLOUD_STORAGE_PROVIDER', 'gcs')
        self.access_key = os.getenv('CLOUD_STORAGE_ACCESS_KEY')
        self.secret_key = os.getenv('CLOUD_STORAGE_SECRET_KEY')
        self.bucket_name = os.getenv('CLOUD_STORAGE_BUCKET')
        self.project = os.getenv('CLOUD_STORAGE_PROJECT')
        self.region = os.getenv('CLOUD_STORAGE_REGION', 'us-east-1')

        if not all([self.access_key, self.secret_key, self.bucket_name]):
            raise StorageNotConfiguredError(
                "Cloud storage configuration incomplete. Set CLOUD_STORAGE_ACCESS_KEY, "
                "CLOUD_STORAGE_SECRET_KEY and CLOUD_STORAGE_BUCKET.")

        default_base = f"https://storage.googleapis.com/{self.bucket_name}"
        self.public_base_url = os.getenv('CLOUD_STORAGE_PUBLIC_URL', default_base).rstrip('/')

        self.driver = self._get_driver()
        self.container = self.driver.get_container(container_name=self.bucket_name)
        logger.info(f"Cloud storage initialized with provider: {self.provider_name}")

    def _get_driver(self):
        """Get the libcloud driver for the configured provider."""
        if self.provider_name not in self.PROVIDERS:
            raise ValueError(f"Unsupported provider: {self.provider_name}")

        kwargs = {
            'key': self.access_key,
            'secret': self.secret_key,
        }
        if self.provider_name == 'gcs' and self.project:
            kwargs['project'] = self.project
        elif self.provider_name in ('s3', 'minio'):
            kwargs['region'] = self.region

        return get_driver(self.PROVIDERS[self.provider_name])(**kwargs)

    def public_url(self, object_name):
        return f"{self.public_base_url}/{object_name}"

    def _make_public(self, obj):
        """Grant anonymous read on an object; failures are only logged."""
        if not hasattr(self.driver, 'ex_set_permissions'):
            return
        try:
            from libcloud.storage.drivers.google_storage import ObjectPermissions
            self.driver.ex_set_permissions(
                self.container.name, obj.name, entity='allUsers', role=ObjectPermissions.READER)
            logger.debug(f"Made file public: {obj.name}")
        except Exception as e:
            logger.error(f"Failed to make file public: {obj.name}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((RequestException, OSError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _put(self, data, object_name, content_type):
        return self.driver.upload_object_via_stream(
            iterator=iter([data]),
            container=self.container,
            object_name=object_name,
            extra={'content_type': content_type},
        )

    def upload_file(self, data, filename, content_type=None, folder='uploads'):
        """
        Upload one file into a bucket folder under a collision-free name.

        Args:
            data: File content as bytes
            filename: Original client filename
            content_type: MIME type; guessed from the filename when missing
            folder: Bucket folder (see UploadCategory.folder)

        Returns:
            str: Public URL of the uploaded object
        """
        object_name = unique_object_name(folder, filename)
        content_type = content_type or guess_content_type(filename or '')
        obj = self._put(data, object_name, content_type)
        self._make_public(obj)
        url = self.public_url(object_name)
        logger.info(f"Uploaded file to cloud storage: {url}", extra={'extra_fields': {
            'object_name': object_name,
            'size_bytes': len(data),
            'sha256': compute_file_hash(data),
        }})
        return url

    def upload_path(self, file_path, folder='uploads'):
        """
        Upload a local file keeping its basename (used for legacy migration).

        Returns:
            str: Public URL of the uploaded object
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")
        object_name = f"{folder}/{path.name}"
        obj = self._put(path.read_bytes(), object_name, guess_content_type(path.name))
        self._make_public(obj)
        return self.public_url(object_name)


# Global instance
_cloud_storage = None
_cloud_storage_lock = Lock()


def get_cloud_storage():
    """Get or create cloud storage service instance (thread-safe)."""
    global _cloud_storage
    if _cloud_storage is None:
        with _cloud_storage_lock:
            if _cloud_storage is None:
                try:
                    _cloud_storage = CloudStorageService()
                except Exception as e:
                    logger.error(f"Failed to initialize cloud storage: {e}")
                    raise
    return _cloud_storage


def reset_cloud_storage():
    """Drop the cached instance so the next call re-reads the environment."""
    global _cloud_storage
    with _cloud_storage_lock:
        _cloud_storage = None
