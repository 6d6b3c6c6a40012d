"""
Device descriptors and state values.

Descriptors say how to reach a relay; states are immutable snapshots
of what the relay last reported.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class DeviceCategory(Enum):
    """Kind of control presented to the user."""

    LIGHT = "light"
    GENERIC_ON_OFF = "generic_on_off"


class PowerState(Enum):
    """Relay power state."""

    ON = "on"
    OFF = "off"
    UNKNOWN = "unknown"


class Health(Enum):
    """Whether the device answered the last request."""

    OK = "ok"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class DeviceDescriptor:
    """Static description of one controllable relay."""

    device_id: str
    display_name: str
    category: DeviceCategory
    base_address: str
    command_key: str
    on_token: str = "ON"

    def command_url(self, argument: Optional[str] = None) -> str:
        """
        Build the Tasmota command URL for this relay.

        Args:
            argument: Power argument ("0", "1", "2") or None for a status query

        Returns:
            Absolute URL, e.g. http://host/cm?cmnd=POWER1%202
        """
        cmnd = self.command_key
        if argument is not None:
            cmnd = f"{cmnd}%20{argument}"
        return f"{self.base_address.rstrip('/')}/cm?cmnd={cmnd}"


@dataclass(frozen=True)
class DeviceState:
    """Reconciled state of a device at one point in time."""

    device_id: str
    power: PowerState = PowerState.UNKNOWN
    health: Health = Health.OK

    @property
    def is_on(self) -> bool:
        return self.power == PowerState.ON

    @property
    def is_reachable(self) -> bool:
        return self.health == Health.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.device_id,
            "power": self.power.value,
            "health": self.health.value,
        }
