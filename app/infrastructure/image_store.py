"""Image storage adapters.

Product and option-value images are pushed to an object store and
referenced by their public URL. Two backends are provided: a local
filesystem store for development and an HTTP object store (S3-style
``PUT`` with an ACL header) for deployments.
"""

import mimetypes
import time
from pathlib import Path
from typing import Protocol

import httpx
import structlog

from app.infrastructure.config import settings

logger = structlog.get_logger()


class ImageUploadError(Exception):
    """Error raised when an image could not be stored."""

    def __init__(self, filename: str, message: str, status_code: int | None = None) -> None:
        self.filename = filename
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{filename}] {message}")


class ImageStore(Protocol):
    """Object store accepting image bytes and returning a public URL."""

    def upload(
        self,
        content: bytes,
        filename: str,
        namespace: str,
        visibility: str = "public-read",
    ) -> str:
        """Store an image and return its URL."""
        ...


def build_object_key(filename: str, namespace: str) -> str:
    """Build a collision-resistant object key.

    Args:
        filename: Original file name.
        namespace: Folder the object is stored under.

    Returns:
        Key of the form ``{namespace}/{stem}-{ms}{ext}``.
    """
    path = Path(filename or "image")
    stem = path.stem.replace(" ", "-") or "image"
    millis = int(time.time() * 1000)
    return f"{namespace.strip('/')}/{stem}-{millis}{path.suffix.lower()}"


def guess_content_type(filename: str) -> str:
    """Guess the MIME type of an image file name."""
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


# ============================================================================
# Local Filesystem Store
# ============================================================================


class LocalImageStore:
    """Store images on local disk and serve them from a base URL."""

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def upload(
        self,
        content: bytes,
        filename: str,
        namespace: str,
        visibility: str = "public-read",
    ) -> str:
        """Write the image below ``root`` and return its public URL.

        Raises:
            ImageUploadError: If the file could not be written.
        """
        key = build_object_key(filename, namespace)
        target = self.root / key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise ImageUploadError(filename, f"Could not write image: {e}") from e

        logger.debug("Stored image locally", key=key, size_bytes=len(content))
        return f"{self.public_base_url}/{key}"


# ============================================================================
# HTTP Object Store
# ============================================================================


class HttpImageStore:
    """Upload images to an S3-compatible endpoint with a plain HTTP ``PUT``."""

    def __init__(
        self,
        endpoint: str,
        bucket: str,
        public_base_url: str | None = None,
        token: str | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            endpoint: Base URL of the object store.
            bucket: Bucket the images are written to.
            public_base_url: URL prefix used in returned links, defaults to
                ``{endpoint}/{bucket}``.
            token: Optional bearer token.
            timeout: Request timeout in seconds.
            client: Preconfigured client, mainly for tests.
        """
        self.endpoint = endpoint.rstrip("/")
        self.bucket = bucket
        self.public_base_url = (public_base_url or f"{self.endpoint}/{bucket}").rstrip("/")
        self.token = token
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self, filename: str, visibility: str) -> dict[str, str]:
        headers = {
            "Content-Type": guess_content_type(filename),
            "x-amz-acl": visibility,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def upload(
        self,
        content: bytes,
        filename: str,
        namespace: str,
        visibility: str = "public-read",
    ) -> str:
        """PUT the image and return its public URL.

        Raises:
            ImageUploadError: On transport errors or a non-2xx response.
        """
        key = build_object_key(filename, namespace)
        url = f"{self.endpoint}/{self.bucket}/{key}"

        try:
            response = self._client.put(
                url,
                content=content,
                headers=self._headers(filename, visibility),
            )
        except httpx.HTTPError as e:
            logger.error("Image upload failed", key=key, error=str(e))
            raise ImageUploadError(filename, f"Upload request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "Image store rejected upload",
                key=key,
                status_code=response.status_code,
            )
            raise ImageUploadError(
                filename,
                f"Object store returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        logger.info("Uploaded image", key=key, size_bytes=len(content))
        return f"{self.public_base_url}/{key}"

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()


# Global store instance
_image_store: ImageStore | None = None


def get_image_store() -> ImageStore:
    """Get the configured image store singleton.

    Returns:
        ImageStore for ``settings.image_store_backend``.
    """
    global _image_store
    if _image_store is None:
        if settings.image_store_backend == "http":
            _image_store = HttpImageStore(
                endpoint=settings.image_store_endpoint,
                bucket=settings.image_store_bucket,
                public_base_url=settings.image_store_public_base_url,
                token=settings.image_store_token,
                timeout=settings.image_store_timeout_seconds,
            )
        else:
            _image_store = LocalImageStore(
                root=settings.image_store_local_dir,
                public_base_url=settings.image_store_public_base_url,
            )
    return _image_store
