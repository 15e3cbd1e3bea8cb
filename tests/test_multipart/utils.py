import unittest
from io import BytesIO

from multipart import header_quote

from imageblob.exceptions import MalformedUpload
from imageblob.multipart import decode_form


def to_bytes(data, enc="utf8"):
    if isinstance(data, str):
        data = data.encode(enc)
    return data


class MultipartBuilder(object):
    """Writes a ``multipart/form-data`` body piece by piece."""

    def __init__(self, boundary="foo"):
        self.boundary = boundary
        self.data = BytesIO()

    @property
    def content_type(self):
        return "multipart/form-data; boundary=%s" % self.boundary

    def reset(self):
        self.data.seek(0)
        self.data.truncate()
        return self

    def write(self, *chunks):
        for chunk in chunks:
            self.data.write(to_bytes(chunk))
        return self

    def write_boundary(self):
        if self.data.tell() > 0:
            self.write(b"\r\n")
        self.write(b"--", to_bytes(self.boundary), b"\r\n")

    def write_end(self, force=False):
        end = b"--" + to_bytes(self.boundary) + b"--"
        if not force and self.data.getvalue().endswith(end):
            return self
        if self.data.tell() > 0:
            self.write(b"\r\n")
        self.write(end)
        return self

    def write_header(self, header, value, **opts):
        line = to_bytes(header) + b": " + to_bytes(value)
        for opt, val in opts.items():
            if val is not None:
                line += b"; " + to_bytes(opt) + b"=" + to_bytes(header_quote(val))
        self.write(line + b"\r\n")

    def write_field(self, name, data, filename=None, content_type=None):
        self.write_boundary()
        self.write_header("Content-Disposition", "form-data", name=name,
                          filename=filename)
        if content_type:
            self.write_header("Content-Type", content_type)
        self.write(b"\r\n")
        self.write(data)
        return self

    def write_raw_part(self, headers, data):
        """Write a part with verbatim header lines."""
        self.write_boundary()
        for line in headers:
            self.write(to_bytes(line) + b"\r\n")
        self.write(b"\r\n")
        self.write(data)
        return self

    def getvalue(self):
        return self.data.getvalue()

    def stream(self):
        return BytesIO(self.data.getvalue())


class BaseDecoderTest(unittest.TestCase):
    def setUp(self):
        self.body = MultipartBuilder()
        self.to_close = []

    def tearDown(self):
        for form in self.to_close:
            form.close()

    def decode(self, content_type=None, **kwargs):
        if content_type is None:
            content_type = self.body.content_type
        form = decode_form(self.body.stream(), content_type, **kwargs)
        self.to_close.append(form)
        return form

    def assertDecodeFails(self, message=None, **kwargs):
        with self.assertRaises(MalformedUpload) as ex:
            self.decode(**kwargs)
        if message:
            self.assertIn(message, str(ex.exception))
