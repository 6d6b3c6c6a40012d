"""
Tasmota Control - state synchronization and control dispatch for Tasmota relays.

Keeps a small fixed set of relays (a light and an on/off appliance)
in sync with the user's view of them over Tasmota's HTTP command API.

Architecture:
- devices/: Device descriptors, state values and the registry
- capabilities/: Tasmota HTTP client and control dispatcher
- state/: State reconciliation and the replaying update publisher
- responses/: Labels and messages for the command line host
"""

__version__ = "0.1.0"

from .config import settings, ControlConfig
from .capabilities import AckSignal, Action, ControlDispatcher, ControlSession, TasmotaClient
from .devices import DeviceDescriptor, DeviceRegistry, DeviceState, Health, PowerState
from .state import UpdatePublisher, reconcile

__all__ = [
    "settings",
    "ControlConfig",
    "AckSignal",
    "Action",
    "ControlDispatcher",
    "ControlSession",
    "TasmotaClient",
    "DeviceDescriptor",
    "DeviceRegistry",
    "DeviceState",
    "Health",
    "PowerState",
    "UpdatePublisher",
    "reconcile",
]
