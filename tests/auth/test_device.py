"""Tests for auth/device.py - device identity and labels."""

import uuid

import pytest

from auth.config import AuthFlowConfig
from auth.device import DeviceIdentity, condense, describe_user_agent
from auth.storage import InMemoryKeyValueStore


class TestDeviceIdentity:
    """Device id is generated once and reused."""

    def test_generates_uuid_on_first_access(self, device):
        assert uuid.UUID(device.device_id)

    def test_persists_to_store(self, device, store):
        device_id = device.device_id
        assert store.get("connecta_device_id") == device_id

    def test_same_id_on_repeated_access(self, device):
        assert device.device_id == device.device_id

    def test_survives_restart(self, store, config):
        """A new instance over the same store sees the same id."""
        first = DeviceIdentity(store, config).device_id
        second = DeviceIdentity(store, config).device_id
        assert first == second

    def test_uses_existing_stored_id(self, config):
        store = InMemoryKeyValueStore({"connecta_device_id": "existing-device"})
        assert DeviceIdentity(store, config).device_id == "existing-device"

    def test_cached_after_first_read(self, device, store):
        """Store changes after first read don't change the identity."""
        device_id = device.device_id
        store.set("connecta_device_id", "tampered")
        assert device.device_id == device_id

    def test_storage_prefix_applies(self, store):
        config = AuthFlowConfig(storage_prefix="other")
        DeviceIdentity(store, config).device_id
        assert store.get("other_device_id") is not None


class TestDeviceLabel:
    def test_label_has_platform_and_agent(self, store, config):
        device = DeviceIdentity(store, config, platform="MacIntel", user_agent="Agent/1.0")
        assert device.label == "MacIntel | Agent/1.0"

    def test_label_defaults(self, store, config):
        assert DeviceIdentity(store, config).label == "Device | Browser"

    def test_long_user_agent_condensed(self, store, config):
        device = DeviceIdentity(store, config, platform="Win32", user_agent="x" * 200)
        agent_part = device.label.split(" | ", 1)[1]
        assert len(agent_part) == 80
        assert agent_part.endswith("...")


class TestCondense:
    def test_short_text_unchanged(self):
        assert condense("short", 80) == "short"

    def test_exact_length_unchanged(self):
        assert condense("a" * 80, 80) == "a" * 80


class TestDescribeUserAgent:
    @pytest.mark.parametrize(
        "user_agent,browser,os_name,device_type",
        [
            (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0 Safari/537.36 Edg/120.0",
                "Edge",
                "Windows 10/11",
                "desktop",
            ),
            (
                "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
                "Firefox",
                "Linux",
                "desktop",
            ),
            (
                "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
                "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
                "Safari",
                "iOS",
                "mobile",
            ),
            (
                "Mozilla/5.0 (Linux; Android 14) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0 Mobile Safari/537.36",
                "Chrome",
                "Android",
                "mobile",
            ),
        ],
    )
    def test_known_agents(self, user_agent, browser, os_name, device_type):
        description = describe_user_agent(user_agent)
        assert description.browser == browser
        assert description.os == os_name
        assert description.type == device_type

    def test_unknown_agent(self):
        description = describe_user_agent("")
        assert description.browser == "Unknown Browser"
        assert description.os == "Unknown OS"
        assert description.type == "browser"
