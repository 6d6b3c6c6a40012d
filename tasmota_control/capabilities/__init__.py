"""
Device control capabilities.

Includes the Tasmota HTTP client and the control dispatcher.
"""

from .tasmota import Action, CommandResult, NetworkError, TasmotaClient
from .dispatcher import AckSignal, ActionResult, ControlDispatcher, ControlSession

__all__ = [
    "Action",
    "CommandResult",
    "NetworkError",
    "TasmotaClient",
    "AckSignal",
    "ActionResult",
    "ControlDispatcher",
    "ControlSession",
]
