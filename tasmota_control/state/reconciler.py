"""
State reconciliation.

Maps a raw request outcome to a DeviceState. Reachability and
state certainty are tracked separately: a device that answered
with an unusable body is reachable but its power state is unknown.
"""

from ..capabilities.tasmota import CommandResult, NetworkError
from ..devices.models import DeviceDescriptor, DeviceState, Health, PowerState


def reconcile(descriptor: DeviceDescriptor, result: CommandResult) -> DeviceState:
    """
    Produce the normalized state for a request outcome.

    Args:
        descriptor: Device the request was sent to
        result: Payload or error returned by the client

    Returns:
        DeviceState for descriptor.device_id
    """
    if result.error == NetworkError.UNREACHABLE:
        return unreachable_state(descriptor.device_id)

    payload = result.payload if result.error is None else None
    if payload is None or descriptor.command_key not in payload:
        power = PowerState.UNKNOWN
    elif str(payload[descriptor.command_key]) == descriptor.on_token:
        power = PowerState.ON
    else:
        power = PowerState.OFF

    return DeviceState(device_id=descriptor.device_id, power=power, health=Health.OK)


def unreachable_state(device_id: str) -> DeviceState:
    """State used for ids that could not be queried or are not registered."""
    return DeviceState(device_id=device_id, power=PowerState.UNKNOWN, health=Health.UNREACHABLE)
