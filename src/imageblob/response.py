"""
The JSON document returned by the upload endpoint.

A response looks like::

    {"files": [{"fileName": "sample.jpg",
                "fileType": "image/jpeg",
                "base64": "/9j/4AAQ...",
                "length": 1234,
                "params": {"FOO_PARAM": ["FOO_VAL"]}}]}
"""

import base64
import json
from collections import namedtuple

__all__ = ["FileDescriptor", "UploadResponse", "encode_base64", "assemble"]


def encode_base64(data):
    """Standard alphabet, padded, no line breaks."""
    return base64.b64encode(data).decode("ascii")


_FileDescriptorBase = namedtuple(
    "_FileDescriptorBase", ["file_name", "file_type", "base64", "length",
                            "params"])


class FileDescriptor(_FileDescriptorBase):
    """What the server observed about one uploaded file."""

    __slots__ = ()

    @classmethod
    def from_captured(cls, captured, params):
        with captured.open() as fp:
            data = fp.read()
        return cls(
            file_name=captured.filename,
            file_type=captured.content_type,
            base64=encode_base64(data),
            length=captured.length,
            params=params,
        )

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(
                file_name=data.get("fileName"),
                file_type=data.get("fileType"),
                base64=data.get("base64") or "",
                length=int(data["length"]),
                params={k: list(v) for k, v in (data.get("params") or {}).items()},
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise ValueError("Invalid file descriptor: %r" % (data,)) from e

    def payload(self):
        """The uploaded bytes, decoded from :attr:`base64`."""
        return base64.b64decode(self.base64, validate=True)

    def param(self, name, index=0, default=None):
        values = self.params.get(name) or []
        try:
            return values[index]
        except IndexError:
            return default

    def to_dict(self):
        return {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "base64": self.base64,
            "length": self.length,
            "params": self.params,
        }


class UploadResponse(object):
    """The ordered collection of descriptors for one request."""

    def __init__(self, files=None):
        self.files = list(files or ())

    def __len__(self):
        return len(self.files)

    def __iter__(self):
        return iter(self.files)

    def __bool__(self):
        return bool(self.files)

    def first(self):
        return self.files[0] if self.files else None

    def to_dict(self):
        return {"files": [f.to_dict() for f in self.files]}

    def to_json(self):
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, text):
        """Parse a response body.

        The bare ``files`` array is accepted as well as the full object.
        Raises :class:`ValueError` for anything else.
        """
        data = json.loads(text)
        if isinstance(data, dict):
            if "files" not in data:
                raise ValueError('Expected to find "files" array')
            data = data["files"]
        if not isinstance(data, list):
            raise ValueError("Expected a list of files, got %s"
                             % type(data).__name__)
        return cls(FileDescriptor.from_dict(item) for item in data)


def assemble(captured_files, params):
    """Build the response for `captured_files`.

    Every descriptor shares the very same `params` mapping, since all
    parts of a request were sent with the same form parameters.
    """
    return UploadResponse(
        FileDescriptor.from_captured(captured, params)
        for captured in captured_files)
