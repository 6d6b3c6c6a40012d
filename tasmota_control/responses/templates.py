"""
Response templates for the control host.

Labels for toggle buttons and messages describing action outcomes
and device states.
"""

from typing import Optional

from ..capabilities.dispatcher import ActionResult
from ..devices.models import DeviceState, PowerState

# Toggle button labels
STATE_LABELS = {
    PowerState.ON: "On",
    PowerState.OFF: "Off",
    PowerState.UNKNOWN: "Unknown",
}

UNREACHABLE_LABEL = "Not responding"

# Action success templates (short, long)
ACTION_SUCCESS_TEMPLATES = {
    "toggle": [
        "Done.",
        "Toggled the {target}.",
    ],
    "turn_on": [
        "Done.",
        "Turned on the {target}.",
    ],
    "turn_off": [
        "Done.",
        "Turned off the {target}.",
    ],
    "query_status": [
        "Done.",
        "Checked the {target}.",
    ],
}

# Action failure templates
ACTION_FAILURE_TEMPLATES = {
    "device_not_found": "I couldn't find a device called {target}.",
    "timeout": "The {target} didn't respond in time.",
    "default": "Sorry, I couldn't control the {target}.",
}


class ResponseTemplates:
    """Template-based text for the command line host."""

    def __init__(self, use_short_responses: bool = False):
        """
        Initialize response templates.

        Args:
            use_short_responses: Use shorter "Done." style responses
        """
        self._use_short = use_short_responses

    def state_label(self, state: DeviceState) -> str:
        """Label shown on a device's toggle button."""
        if not state.is_reachable:
            return UNREACHABLE_LABEL
        return STATE_LABELS[state.power]

    def describe_state(self, state: DeviceState, name: Optional[str] = None) -> str:
        """One line status, e.g. "Tasmota Light: On"."""
        return f"{name or state.device_id}: {self.state_label(state)}"

    def success_response(self, action: str, target: Optional[str] = None) -> str:
        templates = ACTION_SUCCESS_TEMPLATES.get(action, ["Done."])
        template = templates[0] if self._use_short else templates[-1]
        return template.format(target=target or "device")

    def failure_response(self, error_type: Optional[str], target: Optional[str] = None) -> str:
        template = ACTION_FAILURE_TEMPLATES.get(
            error_type or "default",
            ACTION_FAILURE_TEMPLATES["default"],
        )
        return template.format(target=target or "device")

    def action_response(self, result: ActionResult, target: Optional[str] = None) -> str:
        """
        Describe an action result.

        Args:
            result: Outcome returned by the dispatcher
            target: Display name of the device

        Returns:
            Response text, with the new state appended when known
        """
        target = target or result.device_id
        if not result.success:
            return self.failure_response(result.error, target)

        text = self.success_response(result.action.value, target)
        if result.state is not None and result.state.power != PowerState.UNKNOWN:
            text = f"{text} It is now {self.state_label(result.state).lower()}."
        return text


# Singleton instance
_templates: Optional[ResponseTemplates] = None


def get_templates(use_short: bool = False) -> ResponseTemplates:
    """Get or create global templates."""
    global _templates
    if _templates is None:
        _templates = ResponseTemplates(use_short_responses=use_short)
    return _templates
