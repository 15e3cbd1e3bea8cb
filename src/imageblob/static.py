import mimetypes
import os
from html import escape
from urllib.parse import quote

from webob import Response, exc
from webob.dec import wsgify
from webob.static import FileApp

__all__ = ["DirectoryApp"]

mimetypes.add_type("text/javascript", ".js")
mimetypes.add_type("image/x-icon", ".ico")

_listing_template = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Index of %(path)s</title></head>
<body>
<h1>Index of %(path)s</h1>
<ul>
%(items)s
</ul>
</body>
</html>
"""


class DirectoryApp(object):
    """Serves the files below `path`, dispatching on PATH_INFO.

    A directory is answered with the first of `welcome_files` it
    contains, or with a listing of its entries when `listing` is on.
    Requests resolving outside of `path` are refused.
    """

    def __init__(self, path, welcome_files=("index.html",), listing=True,
                 **kw):
        self.path = os.path.abspath(path)
        if not self.path.endswith(os.path.sep):
            self.path += os.path.sep
        if not os.path.isdir(self.path):
            raise ValueError("Not a directory: %s" % path)
        self.welcome_files = tuple(welcome_files)
        self.listing = listing
        self.fileapp_kw = kw

    def make_fileapp(self, path):
        return FileApp(path, **self.fileapp_kw)

    @wsgify
    def __call__(self, req):
        if req.method not in ("GET", "HEAD"):
            return exc.HTTPMethodNotAllowed(
                "You cannot %s a static resource" % req.method)
        path = os.path.abspath(
            os.path.join(self.path, req.path_info.lstrip("/")))
        if path != self.path[:-1] and not path.startswith(self.path):
            return exc.HTTPForbidden()
        if os.path.isdir(path):
            if not req.path_info.endswith("/"):
                location = req.path_url + "/"
                if req.query_string:
                    location += "?" + req.query_string
                return exc.HTTPMovedPermanently(location=location)
            return self.directory(req, path)
        if not os.path.isfile(path):
            return exc.HTTPNotFound(comment=path)
        return self.make_fileapp(path)

    def directory(self, req, path):
        for name in self.welcome_files:
            candidate = os.path.join(path, name)
            if os.path.isfile(candidate):
                return self.make_fileapp(candidate)
        if not self.listing:
            return exc.HTTPForbidden("Directory listing is disabled")
        return self.list_directory(req, path)

    def list_directory(self, req, path):
        entries = []
        with os.scandir(path) as it:
            for entry in it:
                is_dir = entry.is_dir()
                entries.append((not is_dir, entry.name,
                                entry.name + ("/" if is_dir else "")))
        entries.sort()

        items = []
        if req.path_info != "/":
            items.append('<li><a href="../">../</a></li>')
        for _, _, label in entries:
            items.append('<li><a href="%s">%s</a></li>'
                         % (quote(label), escape(label)))
        body = _listing_template % {
            "path": escape(req.path_info),
            "items": "\n".join(items),
        }
        return Response(text=body, content_type="text/html", charset="UTF-8")
