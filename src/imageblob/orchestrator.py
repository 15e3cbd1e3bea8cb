"""
The verification loop.

Each :class:`Scenario` names the images it applies to with a CSS
selector and checks what the server saw when the page uploaded them.
The page is expected to provide:

* ``imageBlob(img)`` returning an object with ``formData(mapping)`` and
  ``ajax(url)``;
* ``imageBlob.defaultImageName``, the name used for images without a
  ``name`` attribute;
* ``webdriver(callback)``, registering `callback` to receive either the
  JSON text of the server response or a one element list describing
  the failure.

Every target ``<img>`` carries an ``alt`` attribute naming its source
file below the ``images/`` directory of the page.
"""

import json
import logging
import os
from collections import namedtuple

from playwright.sync_api import Error as PlaywrightError

from imageblob.browser import DEFAULT_TIMEOUT
from imageblob.exceptions import (
    ScenarioAssertionFailure,
    ScenarioFailure,
)
from imageblob.response import UploadResponse

__all__ = [
    "UPLOAD_SERVLET_PATH",
    "Scenario",
    "ScenarioResult",
    "UploadCase",
    "Verifier",
    "read_upload_result",
    "assert_equal",
    "SCENARIOS",
]

log = logging.getLogger(__name__)

UPLOAD_SERVLET_PATH = "/upload"
IMAGE_DIR = "images"
CUSTOM_DEFAULT_NAME = "0xDEADBEEF"
FORM_PARAM = "FOO_PARAM"
FORM_VALUE = "FOO_VAL"

AJAX_JS = (
    "webdriver(arguments[arguments.length - 1]);\n"
    "imageBlob(arguments[0]).ajax(arguments[1]);"
)
AJAX_WITH_DATA_JS = (
    "webdriver(arguments[arguments.length - 1]);\n"
    "imageBlob(arguments[0]).formData(arguments[2]).ajax(arguments[1]);"
)
DEFAULT_NAME_JS = "() => imageBlob.defaultImageName"
SET_DEFAULT_NAME_JS = "name => { imageBlob.defaultImageName = name; }"


# A failed page load or a missing fixture file fails the case, not the run
CASE_ERRORS = (ScenarioFailure, PlaywrightError, OSError)

UploadCase = namedtuple("UploadCase", ["element", "source", "index"])

ScenarioResult = namedtuple(
    "ScenarioResult", ["scenario", "index", "source", "passed", "message"])


class Scenario(object):
    """A selector paired with a check.

    `check` is called as ``check(verifier, case)`` for every matching
    element and raises :class:`~imageblob.exceptions.ScenarioFailure`
    when the outcome is wrong.
    """

    def __init__(self, name, selector, check, description=None):
        self.name = name
        self.selector = selector
        self.check = check
        self.description = description or check.__doc__ or name

    def __repr__(self):
        return "<%s %s %r>" % (self.__class__.__name__, self.name,
                               self.selector)


def assert_equal(expected, actual, message):
    if expected != actual:
        raise ScenarioAssertionFailure(message, expected=expected,
                                       actual=actual)


def read_upload_result(result):
    """Interpret what the page handed to the ``webdriver`` callback.

    A list means the upload failed and its first item says why; a string
    is the server response.  Returns the first file descriptor.
    """
    if isinstance(result, (list, tuple)):
        message = str(result[0]) if result else "Upload failed"
        raise ScenarioFailure(message)
    if result is None:
        raise ScenarioFailure("Page returned no result")
    if not isinstance(result, str):
        result = json.dumps(result)
    if not result.strip():
        raise ScenarioFailure("Server response was empty.")
    try:
        response = UploadResponse.from_json(result)
    except ValueError as e:
        raise ScenarioFailure("Unreadable server response: %s" % e) from e
    if not response:
        raise ScenarioFailure("Server response was empty.")
    return response.first()


class Verifier(object):
    """Runs scenarios against the page served at `base_url`.

    `resource_base` is the local directory the page is served from; it
    is used to locate the source file of every image.
    """

    def __init__(self, session, base_url, resource_base,
                 servlet_path=UPLOAD_SERVLET_PATH, timeout=DEFAULT_TIMEOUT,
                 scenarios=None):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.resource_base = resource_base
        self.servlet_path = servlet_path
        self.timeout = timeout
        self.scenarios = list(SCENARIOS if scenarios is None else scenarios)

    @property
    def form_url(self):
        return self.base_url + "/"

    @property
    def image_dir(self):
        return os.path.join(self.resource_base, IMAGE_DIR)

    def browse_to_form(self):
        self.session.navigate(self.form_url)

    def find_element_and_source_pairs(self, selector):
        cases = []
        for index, element in enumerate(self.session.find_elements(selector)):
            alt = element.get_attribute("alt")
            source = os.path.join(self.image_dir, alt) if alt else None
            cases.append(UploadCase(element, source, index))
        return cases

    def upload(self, element, form_data=None):
        """Have the page upload `element` and return the first
        :class:`~imageblob.response.FileDescriptor` of the response."""
        if form_data is None:
            result = self.session.execute_async(
                AJAX_JS, element, self.servlet_path, timeout=self.timeout)
        else:
            result = self.session.execute_async(
                AJAX_WITH_DATA_JS, element, self.servlet_path, form_data,
                timeout=self.timeout)
        return read_upload_result(result)

    def default_image_name(self):
        return self.session.execute(DEFAULT_NAME_JS)

    def set_default_image_name(self, name):
        self.session.execute(SET_DEFAULT_NAME_JS, name)

    def run_scenario(self, scenario):
        """Run `scenario` against every matching element.

        Failures, timeouts, browser errors and unreadable source files are
        recorded as failed results; they never stop the run.
        """
        try:
            self.browse_to_form()
            cases = self.find_element_and_source_pairs(scenario.selector)
        except CASE_ERRORS as e:
            log.warning("%s: cannot load %s: %s", scenario.name,
                        self.form_url, e)
            return [ScenarioResult(scenario.name, None, None, False, str(e))]
        if not cases:
            log.warning("%s: no element matches %r", scenario.name,
                        scenario.selector)
            return [ScenarioResult(scenario.name, None, None, False,
                                   "No element matches %r" % scenario.selector)]
        results = []
        for case in cases:
            try:
                scenario.check(self, case)
            except CASE_ERRORS as e:
                log.warning("%s[%d] (%s) failed: %s", scenario.name,
                            case.index, case.source, e)
                results.append(ScenarioResult(
                    scenario.name, case.index, case.source, False, str(e)))
            else:
                log.info("%s[%d] (%s) passed", scenario.name, case.index,
                         case.source)
                results.append(ScenarioResult(
                    scenario.name, case.index, case.source, True, None))
        return results

    def run(self):
        results = []
        for scenario in self.scenarios:
            results.extend(self.run_scenario(scenario))
        return results


def _payload(descriptor):
    try:
        return descriptor.payload()
    except ValueError as e:
        raise ScenarioFailure("Invalid Base64 payload: %s" % e) from e


def check_upload_content(verifier, case):
    """Test image upload content."""
    descriptor = verifier.upload(case.element)
    if not descriptor.length > 0:
        raise ScenarioAssertionFailure(
            "Image upload was empty.", expected="> 0",
            actual=descriptor.length)


def check_payload_length(verifier, case):
    """Test that the reported length matches the returned payload."""
    descriptor = verifier.upload(case.element)
    assert_equal(descriptor.length, len(_payload(descriptor)),
                 "Reported length differs from the payload.")


def check_png_mime_type(verifier, case):
    """Test PNG upload MIME type."""
    descriptor = verifier.upload(case.element)
    assert_equal("image/png", descriptor.file_type, "Wrong MIME type.")


def check_jpeg_mime_type(verifier, case):
    """Test JPG upload MIME type."""
    descriptor = verifier.upload(case.element)
    assert_equal("image/jpeg", descriptor.file_type, "Wrong MIME type.")


def _source_name(case):
    if case.source is None:
        raise ScenarioFailure("Image %d has no alt attribute" % case.index)
    return os.path.basename(case.source)


def check_file_name(verifier, case):
    """Test image uploads with name attributes."""
    expected = _source_name(case)
    descriptor = verifier.upload(case.element)
    assert_equal(expected, descriptor.file_name,
                 "Uploaded image had wrong filename.")


def check_default_file_name(verifier, case):
    """Test image uploads without name attributes."""
    descriptor = verifier.upload(case.element)
    assert_equal(verifier.default_image_name(), descriptor.file_name,
                 "Uploaded image had wrong filename.")


def check_custom_default_file_name(verifier, case):
    """Test image uploads without name attributes, overriding the default
    name."""
    verifier.set_default_image_name(CUSTOM_DEFAULT_NAME)
    descriptor = verifier.upload(case.element)
    assert_equal(CUSTOM_DEFAULT_NAME, descriptor.file_name,
                 "Uploaded image had wrong filename.")


def check_form_data(verifier, case):
    """Test image uploads with additional form data."""
    descriptor = verifier.upload(case.element, {FORM_PARAM: FORM_VALUE})
    assert_equal(FORM_VALUE, descriptor.param(FORM_PARAM),
                 "Additional form data not found.")


def check_data_uri_content(verifier, case):
    """Test that data URI images arrive byte for byte."""
    _source_name(case)
    descriptor = verifier.upload(case.element)
    with open(case.source, "rb") as fp:
        expected = fp.read()
    actual = _payload(descriptor)
    if expected != actual:
        raise ScenarioAssertionFailure(
            "Uploaded bytes differ from %s." % case.source,
            expected="%d bytes" % len(expected),
            actual="%d bytes" % len(actual))


SCENARIOS = [
    Scenario("upload_content", "div.testcase img", check_upload_content),
    Scenario("payload_length", "div.testcase img", check_payload_length),
    Scenario("png_mime_type", "div.testcase.png img", check_png_mime_type),
    Scenario("jpg_mime_type", "div.testcase.jpg img", check_jpeg_mime_type),
    Scenario("with_names", "div.testcase:not(.withoutName) img",
             check_file_name),
    Scenario("without_names", "div.testcase.withoutName img",
             check_default_file_name),
    Scenario("without_names_custom", "div.testcase.withoutName img",
             check_custom_default_file_name),
    Scenario("with_form_data", "div.testcase img", check_form_data),
    Scenario("data_uri_content", "div.testcase.dataUri img",
             check_data_uri_content),
]
