"""
Decoding of ``multipart/*`` request bodies.

The heavy lifting is done by the `multipart`_ library; this module turns
its parts into :class:`UploadPart` objects, separates plain form fields
from file-like parts and recovers client supplied filenames.

.. _multipart: https://pypi.org/project/multipart/
"""

import logging
from urllib.parse import unquote

from multipart import MultipartError, MultipartParser, parse_options_header

from imageblob.exceptions import MalformedUpload

__all__ = ["UploadPart", "DecodedForm", "decode_form", "extract_filename"]

log = logging.getLogger(__name__)


class UploadPart(object):
    """One section of a multipart body that declared a content type."""

    def __init__(self, name, content_type, headers, file, size):
        self.name = name
        self.content_type = content_type
        self.headers = headers
        #: A readable byte stream positioned at the start of the payload
        self.file = file
        self.size = size

    @property
    def disposition(self):
        return self.headers.get("Content-Disposition")

    def close(self):
        if self.file:
            self.file.close()
            self.file = None

    def __repr__(self):
        return "<%s name=%r content_type=%r size=%d>" % (
            self.__class__.__name__, self.name, self.content_type, self.size)


class DecodedForm(object):
    """Result of :func:`decode_form`.

    ``parts`` keeps the arrival order of the content-typed parts.
    ``fields`` maps every plain form field name to the ordered list of its
    values.
    """

    def __init__(self, parts=None, fields=None):
        self.parts = parts if parts is not None else []
        self.fields = fields if fields is not None else {}

    def __iter__(self):
        return iter(self.parts)

    def __len__(self):
        return len(self.parts)

    def close(self):
        for part in self.parts:
            part.close()


def decode_form(stream, content_type, content_length=-1, charset="utf8",
                **limits):
    """Decode a multipart body read from `stream`.

    Parts without a ``Content-Type`` header are plain form fields: they
    do not show up in ``parts`` but their text is collected in
    ``fields``.  The body is decoded completely before anything is
    returned; any decoding problem raises :class:`MalformedUpload` and
    no parts are handed out.

    Extra keyword arguments are passed to
    :class:`multipart.MultipartParser` (size and count limits).
    """
    if not content_type:
        raise MalformedUpload("Missing Content-Type header")
    media_type, options = parse_options_header(content_type)
    if not media_type.startswith("multipart/"):
        raise MalformedUpload("Unsupported Content-Type: %s" % media_type)
    boundary = options.get("boundary", "")
    if not boundary:
        raise MalformedUpload("No boundary for %s" % media_type)
    charset = options.get("charset", charset)
    if content_length is None:
        content_length = -1

    parser = MultipartParser(stream, boundary, content_length,
                             charset=charset, **limits)
    raw_parts = []
    try:
        for part in parser:
            raw_parts.append(part)
    except MultipartError as e:
        for part in raw_parts:
            part.close()
        raise MalformedUpload(str(e)) from e

    form = DecodedForm()
    for index, part in enumerate(raw_parts):
        part_type = part.headers.get("Content-Type")
        if not part_type:
            try:
                value = part.value
            except UnicodeDecodeError as e:
                form.close()
                for rest in raw_parts[index:]:
                    rest.close()
                raise MalformedUpload("Field %r is not valid %s text"
                                      % (part.name, part.charset)) from e
            form.fields.setdefault(part.name, []).append(value)
            part.close()
            continue
        part.file.seek(0)
        form.parts.append(UploadPart(
            name=part.name,
            content_type=part_type.strip(),
            headers=part.headers,
            file=part.file,
            size=part.size,
        ))
    log.debug("decoded %d part(s) and %d field(s)",
              len(form.parts), len(form.fields))
    return form


def _decode_extended(value):
    # RFC 5987: charset'language'percent-encoded
    charset, sep, rest = value.partition("'")
    if not sep:
        return unquote(value)
    _language, sep, encoded = rest.partition("'")
    try:
        return unquote(encoded, encoding=charset or "utf-8")
    except LookupError:
        return unquote(encoded)


def extract_filename(disposition):
    """Return the filename carried by a ``Content-Disposition`` value.

    The value after ``filename=`` is trimmed and unquoted, then anything
    up to the last ``/`` or ``\\`` is dropped, as older browsers send the
    full client path.  ``None`` means no filename was supplied at all,
    which is not the same thing as an empty filename.
    """
    if disposition is None:
        raise MalformedUpload("Missing Content-Disposition header")

    plain = extended = None
    for segment in disposition.split(";"):
        segment = segment.strip()
        if not segment.startswith("filename"):
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip().strip('"')
        if key == "filename" and plain is None:
            plain = value
        elif key == "filename*" and extended is None:
            extended = _decode_extended(value)

    filename = plain if plain is not None else extended
    if filename is None:
        return None
    cut = max(filename.rfind("/"), filename.rfind("\\"))
    return filename[cut + 1:]
