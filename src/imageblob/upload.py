"""
The WSGI application that captures uploads and describes them in JSON.
"""

import logging

from webob import Response, exc
from webob.dec import wsgify

from imageblob.capture import CaptureStore
from imageblob.exceptions import MalformedUpload, StorageError
from imageblob.multipart import decode_form, extract_filename
from imageblob.response import UploadResponse, assemble

__all__ = ["UploadApp", "request_params"]

log = logging.getLogger(__name__)


def request_params(req, fields):
    """Query string parameters followed by the multipart text fields.

    Each name maps to the list of its values, in the order they were sent.
    """
    params = {}
    for name, value in req.GET.items():
        params.setdefault(name, []).append(value)
    for name, values in fields.items():
        params.setdefault(name, []).extend(values)
    return params


class UploadApp(object):
    """Accepts ``POST`` requests with a ``multipart/*`` body.

    Each part that declares a content type is written to the
    :class:`~imageblob.capture.CaptureStore` and described in the
    response.  When no such part is present the response has no body at
    all.  Files already captured are left behind if a later part fails.
    """

    def __init__(self, upload_dir=None, store=None, **parser_limits):
        if store is None:
            store = CaptureStore(upload_dir)
        self.store = store
        self.parser_limits = parser_limits

    @wsgify
    def __call__(self, req):
        if req.method != "POST":
            return exc.HTTPMethodNotAllowed(
                "You cannot %s an upload" % req.method,
                allow="POST")
        try:
            response = self.handle(req)
        except (MalformedUpload, StorageError) as e:
            log.exception("Upload to %s failed", req.path)
            return exc.HTTPInternalServerError(detail=str(e))

        if not response:
            resp = Response(status=200, body=b"")
            del resp.content_type
            return resp
        return Response(
            body=response.to_json().encode("utf-8"),
            content_type="application/json",
            charset="UTF-8",
        )

    def handle(self, req):
        form = decode_form(
            req.body_file,
            req.environ.get("CONTENT_TYPE", ""),
            content_length=req.content_length,
            **self.parser_limits
        )
        try:
            if not form.parts:
                log.debug("no content-typed parts in request to %s", req.path)
                return UploadResponse()
            params = request_params(req, form.fields)
            captured = []
            for part in form.parts:
                filename = extract_filename(part.disposition)
                captured.append(self.store.persist(
                    filename, part.file, content_type=part.content_type))
            log.info("captured %d file(s) from %s", len(captured), req.path)
            return assemble(captured, params)
        finally:
            form.close()
