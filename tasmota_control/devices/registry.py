"""
Device registry for Tasmota Control.

Builds the fixed set of controllable relays from configuration.
A registry is an immutable value; callers rebuild it instead of
holding on to one across requests.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Optional

from ..config import ControlConfig, get_settings
from .models import DeviceCategory, DeviceDescriptor

logger = logging.getLogger("tasmota.control.devices.registry")


class DeviceRegistry(Mapping[str, DeviceDescriptor]):
    """Read-only mapping of device id to descriptor."""

    def __init__(self, descriptors: Iterable[DeviceDescriptor] = ()) -> None:
        devices: dict[str, DeviceDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.device_id in devices:
                logger.warning("Device %s defined twice, overwriting", descriptor.device_id)
            devices[descriptor.device_id] = descriptor
        self._devices = MappingProxyType(devices)

    @classmethod
    def build(cls, config: Optional[ControlConfig] = None) -> "DeviceRegistry":
        """
        Build the registry from configuration.

        Deterministic: building twice from the same config yields
        equal descriptors.

        Args:
            config: Settings to read (global settings if None)
        """
        config = config or get_settings()
        base_address = config.host.url.rstrip("/")

        descriptors = []
        if config.light.enabled:
            descriptors.append(
                DeviceDescriptor(
                    device_id=config.light.control_id,
                    display_name=config.light.name,
                    category=DeviceCategory.LIGHT,
                    base_address=base_address,
                    command_key=config.light.command_key,
                    on_token=config.on_token,
                )
            )
        if config.appliance.enabled:
            descriptors.append(
                DeviceDescriptor(
                    device_id=config.appliance.control_id,
                    display_name=config.appliance.name,
                    category=DeviceCategory.GENERIC_ON_OFF,
                    base_address=base_address,
                    command_key=config.appliance.command_key,
                    on_token=config.on_token,
                )
            )
        return cls(descriptors)

    def lookup(self, device_id: str) -> Optional[DeviceDescriptor]:
        """Get a descriptor by id, or None if the id is unknown."""
        descriptor = self._devices.get(device_id)
        if descriptor is None:
            logger.debug("Unknown device id: %s", device_id)
        return descriptor

    def list_all(self) -> list[DeviceDescriptor]:
        """List all descriptors in configuration order."""
        return list(self._devices.values())

    def __getitem__(self, device_id: str) -> DeviceDescriptor:
        return self._devices[device_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    def __repr__(self) -> str:
        return f"DeviceRegistry({list(self._devices)!r})"


def build_registry(config: Optional[ControlConfig] = None) -> DeviceRegistry:
    """Build a fresh registry (shorthand for DeviceRegistry.build)."""
    return DeviceRegistry.build(config)
