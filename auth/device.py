"""Stable per-installation device identity and human-readable labels."""

import logging
import uuid
from dataclasses import dataclass

from auth.config import AuthFlowConfig
from auth.storage import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceDescription:
    """Browser, OS and form factor guessed from a user agent."""

    browser: str
    os: str
    type: str  # "desktop" | "mobile" | "browser"


def describe_user_agent(user_agent: str) -> DeviceDescription:
    """Classify a user agent string. Order of checks matters (Edge says Chrome too)."""
    ua = user_agent or ""

    if "Firefox" in ua:
        browser = "Firefox"
    elif "Edg" in ua:
        browser = "Edge"
    elif "OPR" in ua or "Opera" in ua:
        browser = "Opera"
    elif "Chrome" in ua:
        browser = "Chrome"
    elif "Safari" in ua:
        browser = "Safari"
    else:
        browser = "Unknown Browser"

    if "Windows NT 10.0" in ua:
        os_name = "Windows 10/11"
    elif "Windows NT 6.3" in ua:
        os_name = "Windows 8.1"
    elif "Windows NT 6.2" in ua:
        os_name = "Windows 8"
    elif "Windows NT 6.1" in ua:
        os_name = "Windows 7"
    elif "Windows" in ua:
        os_name = "Windows"
    elif "Android" in ua:
        os_name = "Android"
    elif "iPhone" in ua or "iPad" in ua or "iOS" in ua:
        os_name = "iOS"
    elif "Mac OS X" in ua:
        os_name = "macOS"
    elif "Linux" in ua:
        os_name = "Linux"
    else:
        os_name = "Unknown OS"

    if os_name in ("Android", "iOS"):
        device_type = "mobile"
    elif os_name != "Unknown OS":
        device_type = "desktop"
    else:
        device_type = "browser"

    return DeviceDescription(browser=browser, os=os_name, type=device_type)


def condense(text: str, max_length: int) -> str:
    """Truncate to max_length, marking the cut with '...'."""
    if len(text) <= max_length:
        return text
    return f"{text[: max_length - 3]}..."


class DeviceIdentity:
    """Random identifier generated once per installation and persisted.

    Not tied to any hardware id. Survives restarts through the store and
    is cached in-process after the first read.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: AuthFlowConfig,
        platform: str = "",
        user_agent: str = "",
    ):
        self._store = store
        self._config = config
        self._platform = platform
        self._user_agent = user_agent
        self._device_id: str | None = None

    @property
    def storage_key(self) -> str:
        return f"{self._config.storage_prefix}_device_id"

    @property
    def device_id(self) -> str:
        """Persisted device id, generated on first access."""
        if self._device_id is not None:
            return self._device_id

        existing = self._store.get(self.storage_key)
        if existing:
            self._device_id = existing
            return existing

        generated = str(uuid.uuid4())
        self._store.set(self.storage_key, generated)
        logger.info("Generated new device identifier")
        self._device_id = generated
        return generated

    @property
    def label(self) -> str:
        """'<platform> | <condensed user agent>' for display and audit."""
        platform = self._platform or "Device"
        user_agent = self._user_agent or "Browser"
        return f"{platform} | {condense(user_agent, self._config.device_label_max_length)}"

    def describe(self) -> DeviceDescription:
        return describe_user_agent(self._user_agent)
