import logging
import os

import pytest

from imageblob.server import ServerConfig, UploadServer

log = logging.getLogger(__name__)

here = os.path.dirname(os.path.abspath(__file__))

WEBAPP_DIR = os.path.join(here, "webapp")
SERVLET_PATH = "/upload"


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "e2e: drives a real browser, needs app.properties")


@pytest.fixture
def webapp_dir():
    return WEBAPP_DIR


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return str(path)


@pytest.fixture
def serve(upload_dir):
    """Start an :class:`UploadServer` on a free port for the test."""
    servers = []

    def _serve(resource_base=WEBAPP_DIR, servlet_path=SERVLET_PATH,
               upload_dir=upload_dir):
        config = ServerConfig(
            servlet_path=servlet_path,
            resource_base=resource_base,
            port=0,
            upload_dir=upload_dir,
        )
        server = UploadServer(config).start()
        servers.append(server)
        log.debug("server started on %s", server.url)
        return server

    yield _serve
    for server in servers:
        server.stop()


def _properties_file():
    return os.environ.get("IMAGEBLOB_PROPERTIES", "app.properties")


@pytest.fixture(scope="session")
def settings():
    from imageblob.config import Settings

    path = _properties_file()
    if not os.path.isfile(path):
        pytest.skip("no %s, browser tests disabled" % path)
    return Settings.load(path)


@pytest.fixture(scope="session")
def live_server(settings, tmp_path_factory):
    config = ServerConfig(
        servlet_path=SERVLET_PATH,
        resource_base=WEBAPP_DIR,
        port=0,
        upload_dir=str(tmp_path_factory.mktemp("uploads")),
    )
    server = UploadServer(config).start()
    yield server
    server.stop()


@pytest.fixture(scope="session")
def browser_session(settings):
    from playwright.sync_api import Error as PlaywrightError

    from imageblob.browser import BrowserSession
    from imageblob.exceptions import ConfigurationError, DriverBinaryMissing

    try:
        session = BrowserSession.from_settings(settings).initialize()
    except (ConfigurationError, DriverBinaryMissing, PlaywrightError) as e:
        pytest.skip("cannot start browser: %s" % e)
    yield session
    session.close()
