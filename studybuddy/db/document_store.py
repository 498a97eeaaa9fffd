"""Extracted-text blobs in Supabase Storage."""

from urllib.parse import unquote, urlparse

from supabase import Client

from studybuddy.core.logging import get_logger

logger = get_logger(__name__)


class DocumentFetchError(Exception):
    """A text blob could not be read."""

    def __init__(self, handle: str, reason: str):
        super().__init__(f"Failed to fetch {handle}: {reason}")
        self.handle = handle
        self.reason = reason


class DocumentNotFoundError(DocumentFetchError):
    """The handle resolved to no stored object."""


class DocumentStore:
    """Byte-level reads of extracted note text, addressed by handle.

    A handle is either a storage URL (``.../<bucket>/<object path>``) or a
    bare object path inside the bucket.
    """

    def __init__(self, client: Client, bucket: str):
        self._client = client
        self.bucket = bucket

    def object_path(self, handle: str) -> str:
        """Resolve a handle to an object path inside the bucket."""
        parsed = urlparse(handle)
        if not parsed.scheme or not parsed.netloc:
            return handle.lstrip("/")

        segments = [unquote(part) for part in parsed.path.split("/") if part]
        if self.bucket in segments:
            idx = segments.index(self.bucket)
            return "/".join(segments[idx + 1 :])
        # Container-style URL: first segment names the container
        return "/".join(segments[1:])

    def fetch(self, handle: str) -> bytes:
        """
        Download the raw bytes behind a handle.

        Raises:
            DocumentNotFoundError: If the handle resolves to nothing
            DocumentFetchError: If the download fails
        """
        path = self.object_path(handle)
        if not path:
            raise DocumentNotFoundError(handle, "empty object path")

        try:
            data = self._client.storage.from_(self.bucket).download(path)
        except Exception as e:
            message = str(e)
            if "not found" in message.lower() or "404" in message:
                raise DocumentNotFoundError(handle, message) from e
            raise DocumentFetchError(handle, message) from e

        if data is None:
            raise DocumentNotFoundError(handle, "no content returned")
        return data
