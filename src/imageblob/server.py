"""
Embedded HTTP server hosting the upload application and the test page.
"""

import logging
import os
import threading
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from webob.dec import wsgify

from imageblob.exceptions import ConfigurationError
from imageblob.static import DirectoryApp
from imageblob.upload import UploadApp

__all__ = ["DEFAULT_PORT", "ServerConfig", "Router", "UploadServer"]

log = logging.getLogger(__name__)

DEFAULT_PORT = 8080


class QuietHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        log.debug("%s - %s", self.address_string(), format % args)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class ServerConfig(object):
    """Settings for :class:`UploadServer`.

    ``servlet_path`` and ``resource_base`` are required.  ``port``
    defaults to 8080 (``0`` picks a free port) and ``upload_dir`` to the
    platform temp directory.
    """

    def __init__(self, servlet_path=None, resource_base=None,
                 port=DEFAULT_PORT, upload_dir=None, host="localhost",
                 welcome_files=("index.html", "form.html")):
        self.servlet_path = servlet_path
        self.resource_base = resource_base
        self.port = port
        self.upload_dir = upload_dir
        self.host = host
        self.welcome_files = tuple(welcome_files)

    def validate(self):
        if not self.servlet_path:
            raise ConfigurationError("servlet_path is required")
        if not self.servlet_path.startswith("/"):
            raise ConfigurationError(
                "servlet_path must start with '/': %r" % self.servlet_path)
        if self.resource_base is None:
            raise ConfigurationError("resource_base is required")
        if not os.path.isdir(self.resource_base):
            raise ConfigurationError(
                "resource_base is not a directory: %s" % self.resource_base)
        if self.port is None:
            self.port = DEFAULT_PORT
        try:
            self.port = int(self.port)
        except (TypeError, ValueError):
            raise ConfigurationError("Invalid port: %r" % (self.port,))
        if not 0 <= self.port < (1 << 16):
            raise ConfigurationError("Port out of range: %d" % self.port)
        if self.upload_dir is not None and not os.path.isdir(self.upload_dir):
            raise ConfigurationError(
                "upload_dir is not a directory: %s" % self.upload_dir)
        return self

    def __repr__(self):
        return "<%s %s:%s%s resource_base=%s>" % (
            self.__class__.__name__, self.host, self.port, self.servlet_path,
            self.resource_base)


class Router(object):
    """Sends ``servlet_path`` to `upload_app` and everything else to
    `fallback`."""

    def __init__(self, servlet_path, upload_app, fallback):
        self.servlet_path = servlet_path
        self.upload_app = upload_app
        self.fallback = fallback

    @wsgify
    def __call__(self, req):
        if req.path_info == self.servlet_path:
            return self.upload_app
        return self.fallback


class UploadServer(object):
    """Runs the upload application and the static pages in a background
    thread.

    ``start()`` returns once the listener accepts connections, ``join()``
    blocks until someone calls ``stop()``.
    """

    def __init__(self, config):
        self.config = config.validate()
        self.app = self.make_app()
        self._server = None
        self._thread = None
        self._stopped = threading.Event()
        self._ever_started = False

    def make_app(self):
        config = self.config
        upload_app = UploadApp(config.upload_dir)
        log.info('Serving file upload application at "%s"',
                 config.servlet_path)
        static_app = DirectoryApp(config.resource_base,
                                  welcome_files=config.welcome_files)
        log.info('Serving static content at root "/" from %s',
                 static_app.path)
        return Router(config.servlet_path, upload_app, static_app)

    @property
    def started(self):
        return self._server is not None

    @property
    def port(self):
        if self._server is None:
            return self.config.port
        return self._server.server_port

    @property
    def url(self):
        return "http://%s:%d" % (self.config.host, self.port)

    def start(self):
        if self._server is not None:
            raise RuntimeError("Server already started")
        self._server = make_server(
            self.config.host,
            self.config.port,
            self.app,
            server_class=ThreadingWSGIServer,
            handler_class=QuietHandler,
        )
        self._stopped.clear()
        self._ever_started = True
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="imageblob-server",
            daemon=True)
        self._thread.start()
        log.info("server started on %s", self.url)
        return self

    def join(self, timeout=None):
        if not self._ever_started:
            raise RuntimeError("Server not started")
        self._stopped.wait(timeout)
        return self

    def stop(self):
        if self._server is None:
            return
        log.debug("shutting server down")
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(5)
        if self._thread.is_alive():
            log.warning("server thread is hanging")
        else:
            log.info("server stopped")
        self._server = None
        self._thread = None
        self._stopped.set()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_value, tb):
        self.stop()
