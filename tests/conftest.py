"""
Pytest fixtures for Tasmota Control tests.

Provides fixtures for:
- Configuration pointing at a fake Tasmota host
- Descriptors for the light and appliance relays
- An in-memory Tasmota device served through httpx.MockTransport
"""

import asyncio
from typing import Optional

import httpx
import pytest

from tasmota_control.config import ControlConfig, HostConfig
from tasmota_control.devices.registry import DeviceRegistry

TEST_HOST = "http://tasmota.test"
LIGHT_ID = "TASMOTA_LIGHT"
SPEAKER_ID = "TASMOTA_SPEAKER"


class FakeTasmota:
    """
    Minimal Tasmota relay board.

    Answers /cm?cmnd=POWERn[ arg] with {"POWERn": "ON"|"OFF"}.
    Individual commands can be delayed, failed or given a custom body.
    """

    def __init__(self, power: Optional[dict[str, bool]] = None):
        self.power = dict(power or {"POWER1": False, "POWER2": False})
        self.unreachable = False
        self.delays: dict[str, float] = {}
        self.bodies: dict[str, tuple[int, bytes]] = {}
        self.requests: list[str] = []

    def _apply(self, cmnd: str) -> dict[str, str]:
        key, _, argument = cmnd.partition(" ")
        current = self.power.get(key, False)
        if argument == "2":
            current = not current
        elif argument in ("0", "1"):
            current = argument == "1"
        self.power[key] = current
        return {key: "ON" if current else "OFF"}

    def _respond(self, request: httpx.Request) -> httpx.Response:
        cmnd = request.url.params.get("cmnd", "")
        if cmnd in self.bodies:
            status, content = self.bodies[cmnd]
            return httpx.Response(status, content=content)
        return httpx.Response(200, json=self._apply(cmnd))

    async def handle(self, request: httpx.Request) -> httpx.Response:
        cmnd = request.url.params.get("cmnd", "")
        self.requests.append(cmnd)
        unreachable = self.unreachable
        # The device answers right away; a delay only holds the reply back
        response = None if unreachable else self._respond(request)
        delay = self.delays.get(cmnd)
        if delay:
            await asyncio.sleep(delay)
        if unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        return response

    def handle_sync(self, request: httpx.Request) -> httpx.Response:
        cmnd = request.url.params.get("cmnd", "")
        self.requests.append(cmnd)
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        return self._respond(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def sync_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_sync)


@pytest.fixture
def config() -> ControlConfig:
    """Configuration with default relays on the fake host."""
    return ControlConfig(host=HostConfig(url=TEST_HOST, request_timeout=0.5))


@pytest.fixture
def registry(config) -> DeviceRegistry:
    return DeviceRegistry.build(config)


@pytest.fixture
def light(registry):
    return registry.lookup(LIGHT_ID)


@pytest.fixture
def speaker(registry):
    return registry.lookup(SPEAKER_ID)


@pytest.fixture
def device() -> FakeTasmota:
    return FakeTasmota()
