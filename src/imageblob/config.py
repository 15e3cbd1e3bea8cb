"""
Settings read from the ``app.properties`` file.

The file holds ``key=value`` lines::

    browser=chrome
    chrome_driver=/opt/chrome/chrome
    firefox_driver=/opt/firefox/firefox

Keys missing from the file may be supplied through ``IMAGEBLOB_*``
environment variables.  Settings are loaded once and handed to whoever
needs them.
"""

import logging
import os
from typing import Literal, Optional

from dotenv import dotenv_values
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from imageblob.exceptions import ConfigurationError

__all__ = ["PROPERTIES_FILE", "Settings"]

log = logging.getLogger(__name__)

PROPERTIES_FILE = "app.properties"

_engine_aliases = {
    "chromium": "chrome",
    "google-chrome": "chrome",
    "gecko": "firefox",
}


class Settings(BaseSettings):
    """Harness settings."""

    model_config = SettingsConfigDict(
        env_prefix="IMAGEBLOB_",
        case_sensitive=False,
        extra="ignore",
    )

    browser: Literal["chrome", "firefox"] = "chrome"
    chrome_driver: Optional[str] = None
    firefox_driver: Optional[str] = None
    headless: bool = True
    port: int = 8080
    upload_dir: Optional[str] = None
    # seconds to wait for the page to answer an upload
    script_timeout: float = 120.0

    @field_validator("browser", mode="before")
    @classmethod
    def _normalize_browser(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            value = _engine_aliases.get(value, value)
        return value

    @field_validator("chrome_driver", "firefox_driver", "upload_dir",
                     mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def load(cls, path=PROPERTIES_FILE, **overrides):
        """Read `path` and return the validated settings.

        A missing file or an invalid value raises
        :class:`~imageblob.exceptions.ConfigurationError`.
        """
        if not os.path.isfile(path):
            raise ConfigurationError("Properties file not found: %s" % path)
        values = {
            key.strip().lower(): value
            for key, value in dotenv_values(path).items()
            if value is not None
        }
        values.update(overrides)
        try:
            settings = cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid settings in %s:\n%s" % (path, e)) from e
        log.debug("loaded settings from %s: browser=%s headless=%s",
                  path, settings.browser, settings.headless)
        return settings

    def driver_path(self, engine=None):
        """The executable configured for `engine` (the selected browser
        by default)."""
        engine = engine or self.browser
        key = "%s_driver" % engine
        path = getattr(self, key, None)
        if not path:
            raise ConfigurationError(
                "WebDriver binary path not set: %s" % key)
        return path
