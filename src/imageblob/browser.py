"""
Browser automation on top of Playwright.

An :class:`AutomationEngine` knows how to launch one kind of browser;
:class:`BrowserSession` owns the launched process and offers the few
primitives the verification loop needs: navigation, element lookup,
script execution (synchronous and callback based) and bounded waits.
"""

import logging
import os
import uuid

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from imageblob.exceptions import DriverBinaryMissing, ScenarioTimeout

__all__ = [
    "DEFAULT_TIMEOUT",
    "AutomationEngine",
    "ChromeEngine",
    "FirefoxEngine",
    "register_engine",
    "engine_for",
    "Waiter",
    "BrowserSession",
]

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120

# Runs a script written against the WebDriver "execute async script"
# convention: the completion callback is the last entry of `arguments`.
# The first value handed to the callback is stored under `token`.
_ASYNC_CALL = """([token, body, args]) => {
    const slots = window.__imageblobAsync || (window.__imageblobAsync = {});
    const done = (value) => {
        if (!(token in slots)) {
            slots[token] = value === undefined ? null : value;
        }
    };
    try {
        new Function(body).apply(window, args.concat([done]));
    } catch (e) {
        done([String(e)]);
    }
}"""

_ASYNC_SETTLED = """token => !!window.__imageblobAsync
    && Object.prototype.hasOwnProperty.call(window.__imageblobAsync, token)"""

_ASYNC_RESULT = "token => window.__imageblobAsync[token]"


class AutomationEngine(object):
    """Launches one kind of browser from a configured executable."""

    #: Name used in the ``browser`` setting
    name = None

    def __init__(self, executable_path):
        self.executable_path = executable_path

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.driver_path(cls.name))

    def resolve_executable(self):
        path = os.path.abspath(os.path.expanduser(self.executable_path))
        if not os.path.exists(path):
            raise DriverBinaryMissing(path)
        return path

    def browser_type(self, playwright):
        raise NotImplementedError

    def launch_options(self, headless):
        return {"headless": headless}

    def launch(self, playwright, headless):
        options = self.launch_options(headless)
        options["executable_path"] = self.resolve_executable()
        log.info("launching %s (%s, headless=%s)",
                 self.name, options["executable_path"], headless)
        return self.browser_type(playwright).launch(**options)

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.executable_path)


class ChromeEngine(AutomationEngine):
    name = "chrome"

    def browser_type(self, playwright):
        return playwright.chromium


class FirefoxEngine(AutomationEngine):
    name = "firefox"

    def browser_type(self, playwright):
        return playwright.firefox


_engines = {}


def register_engine(engine_class):
    """Make `engine_class` selectable through the ``browser`` setting."""
    _engines[engine_class.name] = engine_class
    return engine_class


register_engine(ChromeEngine)
register_engine(FirefoxEngine)


def engine_for(settings, name=None):
    name = name or settings.browser
    try:
        engine_class = _engines[name]
    except KeyError:
        raise ValueError("Unrecognized browser: %s" % name)
    return engine_class.from_settings(settings)


class Waiter(object):
    """Polls the page until a condition holds or `timeout` seconds pass."""

    def __init__(self, page, timeout, poll_interval=0.1):
        if timeout <= 0:
            raise ValueError("timeout must be positive: %r" % (timeout,))
        self.page = page
        self.timeout = timeout
        self.poll_interval = poll_interval

    @property
    def timeout_ms(self):
        return self.timeout * 1000

    def _timed_out(self, what):
        return ScenarioTimeout(
            "Timed out after %s seconds waiting for %s" % (self.timeout, what),
            timeout=self.timeout)

    def until(self, expression, arg=None, description=None):
        """Wait for the JavaScript `expression` to return a truthy value
        and return a handle to that value."""
        try:
            return self.page.wait_for_function(
                expression, arg=arg, timeout=self.timeout_ms,
                polling=self.poll_interval * 1000)
        except PlaywrightTimeoutError as e:
            raise self._timed_out(description or expression) from e

    def until_selector(self, selector, state="attached"):
        try:
            return self.page.wait_for_selector(
                selector, state=state, timeout=self.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise self._timed_out(repr(selector)) from e


class BrowserSession(object):
    """One browser process driven through Playwright.

    The headless flag has to be chosen before :meth:`initialize`.  The
    session is not restarted after a failure: a page left in a bad state
    by a timed out call is what the next caller gets.
    """

    def __init__(self, engine, headless=True, timeout=DEFAULT_TIMEOUT):
        self.engine = engine
        self._headless = headless
        self.timeout = timeout
        self._playwright = None
        self._browser = None
        self.driver = None

    @classmethod
    def from_settings(cls, settings):
        return cls(engine_for(settings), headless=settings.headless,
                   timeout=settings.script_timeout)

    @property
    def headless(self):
        return self._headless

    def as_headless(self, headless=True):
        if self.driver is not None:
            raise RuntimeError("headless must be set before initialize()")
        self._headless = headless
        return self

    def initialize(self):
        if self.driver is not None:
            return self
        # fail on a missing binary before spawning anything
        self.engine.resolve_executable()
        playwright = sync_playwright().start()
        try:
            browser = self.engine.launch(playwright, self._headless)
            page = browser.new_page()
        except Exception:
            playwright.stop()
            raise
        page.set_default_timeout(self.timeout * 1000)
        page.set_default_navigation_timeout(self.timeout * 1000)
        page.on("console", lambda msg: log.debug("PAGE LOG: %s", msg.text))
        page.on("pageerror", lambda err: log.debug("PAGE ERROR: %s", err))
        self._playwright = playwright
        self._browser = browser
        self.driver = page
        return self

    def get_driver(self):
        if self.driver is None:
            raise RuntimeError("Driver not initialized.")
        return self.driver

    def navigate(self, url):
        """Full page load of `url`, including images."""
        page = self.get_driver()
        try:
            return page.goto(url, wait_until="load")
        except PlaywrightTimeoutError as e:
            raise ScenarioTimeout(
                "Timed out after %s seconds loading %s" % (self.timeout, url),
                timeout=self.timeout) from e

    def find_elements(self, selector):
        return self.get_driver().query_selector_all(selector)

    def execute(self, script, arg=None):
        return self.get_driver().evaluate(script, arg)

    def execute_async(self, script, *args, timeout=None):
        """Run `script` with ``arguments`` set to `args` plus a callback,
        and return the first value passed to that callback.

        Raises :class:`~imageblob.exceptions.ScenarioTimeout` when the
        callback is not invoked within `timeout` seconds (the session
        timeout by default).
        """
        page = self.get_driver()
        token = uuid.uuid4().hex
        page.evaluate(_ASYNC_CALL, [token, script, list(args)])
        self.wait_for(timeout or self.timeout).until(
            _ASYNC_SETTLED, arg=token, description="async script result")
        return page.evaluate(_ASYNC_RESULT, token)

    def wait_for(self, timeout):
        return Waiter(self.get_driver(), timeout)

    def close(self):
        if self.driver is None or self._playwright is None:
            return
        log.info("closing %s", self.engine.name)
        try:
            self._browser.close()
        finally:
            self._playwright.stop()
            self._playwright = None

    def __enter__(self):
        return self.initialize()

    def __exit__(self, exc_type, exc_value, tb):
        self.close()
