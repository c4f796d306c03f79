"""
Local filesystem blob store for attachment payloads.

Keys are opaque: ``<utc timestamp>_<uuid hex><ext>``. The store never sees
thesis ids or user ids; the attachment row holds the mapping.

The factory builds one instance from ``UPLOAD_FOLDER`` and keeps it in
``app.extensions["blob_store"]``; services receive it as an argument.
"""

import logging
import os
import uuid
from datetime import datetime, timezone

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


class BlobNotFound(Exception):
    """Raised when a key has no backing file."""


class LocalBlobStore:
    def __init__(self, root):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def new_key(self, filename):
        ext = os.path.splitext(secure_filename(filename or ""))[1].lower()
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        return f"{stamp}_{uuid.uuid4().hex}{ext}"

    def path(self, key):
        safe = secure_filename(key)
        if not safe or safe != key:
            raise BlobNotFound(key)
        return os.path.join(self.root, safe)

    def put(self, stream, filename, *, max_bytes=None):
        """Copy ``stream`` into a new blob and return ``(key, size)``.

        When ``max_bytes`` is exceeded the partial file is removed and
        ValueError is raised.
        """
        key = self.new_key(filename)
        target = self.path(key)
        size = 0
        try:
            with open(target, "wb") as fh:
                while True:
                    chunk = stream.read(_CHUNK)
                    if not chunk:
                        break
                    size += len(chunk)
                    if max_bytes is not None and size > max_bytes:
                        raise ValueError(f"{filename} exceeds {max_bytes} bytes")
                    fh.write(chunk)
        except BaseException:
            self._remove(target)
            raise
        return key, size

    def open(self, key):
        target = self.path(key)
        if not os.path.isfile(target):
            raise BlobNotFound(key)
        return open(target, "rb")

    def exists(self, key):
        try:
            return os.path.isfile(self.path(key))
        except BlobNotFound:
            return False

    def delete(self, key):
        """Remove a blob. Missing blobs are not an error."""
        self._remove(self.path(key))

    @staticmethod
    def _remove(target):
        try:
            os.remove(target)
        except FileNotFoundError:
            pass


def init_blob_store(app):
    store = LocalBlobStore(app.config["UPLOAD_FOLDER"])
    app.extensions["blob_store"] = store
    logger.debug("Blob store at %s", store.root)
    return store


def get_blob_store(app):
    return app.extensions["blob_store"]
