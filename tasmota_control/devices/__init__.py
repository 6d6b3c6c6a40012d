"""
Controllable devices: descriptors, state values and the registry.
"""

from .models import DeviceCategory, DeviceDescriptor, DeviceState, Health, PowerState
from .registry import DeviceRegistry, build_registry

__all__ = [
    "DeviceCategory",
    "DeviceDescriptor",
    "DeviceState",
    "Health",
    "PowerState",
    "DeviceRegistry",
    "build_registry",
]
