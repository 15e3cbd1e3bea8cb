"""
Persisting uploaded parts to uniquely named temporary files.
"""

import atexit
import logging
import os
import re
import tempfile

from multipart import copy_file

from imageblob.exceptions import StorageError

__all__ = ["CapturedFile", "CaptureStore"]

log = logging.getLogger(__name__)

_unsafe_chars = re.compile(r"[^A-Za-z0-9._-]+")


class CapturedFile(object):
    """A part's payload as it was written to disk."""

    def __init__(self, filename, content_type, length, path):
        #: Client supplied filename, ``None`` if the client sent none
        self.filename = filename
        self.content_type = content_type
        self.length = length
        self.path = path

    def open(self):
        return open(self.path, "rb")

    def read(self):
        with self.open() as fp:
            return fp.read()

    def __repr__(self):
        return "<%s %r (%s, %d bytes) at %s>" % (
            self.__class__.__name__, self.filename, self.content_type,
            self.length, self.path)


class CaptureStore(object):
    """Writes payloads below `directory` (the platform temp dir if ``None``).

    Files are registered for removal when the interpreter exits; nothing
    else ever deletes them.
    """

    def __init__(self, directory=None, cleanup_at_exit=True):
        self.directory = directory
        self.cleanup_at_exit = cleanup_at_exit

    @property
    def target_directory(self):
        if self.directory is None:
            return tempfile.gettempdir()
        return os.fspath(self.directory)

    def _prefix(self, hint):
        seed = _unsafe_chars.sub("_", hint or "").strip("._")
        return (seed or "upload")[:64] + "-"

    def persist(self, filename_hint, stream, content_type=None):
        """Drain `stream` into a new file and return a :class:`CapturedFile`.

        `filename_hint` only seeds the generated name; existing files are
        never overwritten.
        """
        directory = self.target_directory
        try:
            fd, path = tempfile.mkstemp(
                prefix=self._prefix(filename_hint), suffix=".tmp",
                dir=directory)
        except OSError as e:
            raise StorageError(
                "Cannot create a file in %s: %s" % (directory, e)) from e

        if self.cleanup_at_exit:
            atexit.register(_remove_quietly, path)

        try:
            with os.fdopen(fd, "wb") as fp:
                length = copy_file(stream, fp)
        except OSError as e:
            raise StorageError("Cannot write %s: %s" % (path, e)) from e

        captured = CapturedFile(
            filename=filename_hint,
            content_type=content_type,
            length=length,
            path=path,
        )
        log.debug("captured %r", captured)
        return captured


def _remove_quietly(path):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
