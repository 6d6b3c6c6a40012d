"""
Tasmota HTTP client.

Sends power commands and status queries to a device's /cm endpoint
and turns the response into a tagged CommandResult. Failures never
raise: they come back as NetworkError values.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from ..devices.models import DeviceDescriptor

logger = logging.getLogger("tasmota.control.capabilities.tasmota")

DEFAULT_TIMEOUT = 5.0


class Action(Enum):
    """Command sent to a relay."""

    TOGGLE = "toggle"
    QUERY_STATUS = "query_status"
    TURN_ON = "turn_on"
    TURN_OFF = "turn_off"

    @property
    def argument(self) -> Optional[str]:
        """Tasmota power argument, None for a plain status query."""
        return _ACTION_ARGUMENTS[self]


_ACTION_ARGUMENTS = {
    Action.TOGGLE: "2",
    Action.QUERY_STATUS: None,
    Action.TURN_ON: "1",
    Action.TURN_OFF: "0",
}


class NetworkError(Enum):
    """Why a request produced no usable payload."""

    UNREACHABLE = "unreachable"
    BAD_PAYLOAD = "bad_payload"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single request: a payload or an error kind."""

    device_id: str
    action: Action
    payload: Optional[dict[str, Any]] = None
    error: Optional[NetworkError] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(
        cls,
        descriptor: DeviceDescriptor,
        action: Action,
        payload: dict[str, Any],
    ) -> "CommandResult":
        return cls(device_id=descriptor.device_id, action=action, payload=payload)

    @classmethod
    def failure(
        cls,
        descriptor: DeviceDescriptor,
        action: Action,
        error: NetworkError,
        detail: str = "",
    ) -> "CommandResult":
        return cls(
            device_id=descriptor.device_id,
            action=action,
            error=error,
            detail=detail or None,
        )


def command_url(descriptor: DeviceDescriptor, action: Action) -> str:
    """Return the request URL for an action on a device."""
    return descriptor.command_url(action.argument)


class TasmotaClient:
    """
    HTTP client for Tasmota relays.

    Provides:
    - Awaitable requests (send_command)
    - Fire-and-notify requests returning a task (submit)
    - Blocking requests for synchronous callers (send_command_sync)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport | httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._sync_client: Optional[httpx.Client] = None

    async def __aenter__(self) -> "TasmotaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _get_sync_client(self) -> httpx.Client:
        if self._sync_client is None:
            self._sync_client = httpx.Client(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._sync_client

    async def aclose(self) -> None:
        """Release HTTP connections."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._sync_client:
            self._sync_client.close()
            self._sync_client = None

    async def send_command(
        self,
        descriptor: DeviceDescriptor,
        action: Action,
    ) -> CommandResult:
        """
        Send one request and wait for its outcome.

        Args:
            descriptor: Target device
            action: Command to send

        Returns:
            CommandResult with the JSON payload or a NetworkError
        """
        url = command_url(descriptor, action)
        logger.debug("GET %s (%s)", url, action.value)

        try:
            response = await asyncio.wait_for(
                self._get_client().get(url),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", descriptor.device_id, self.timeout)
            return CommandResult.failure(descriptor, action, NetworkError.UNREACHABLE, "timeout")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("%s unreachable: %s", descriptor.device_id, e)
            return CommandResult.failure(descriptor, action, NetworkError.UNREACHABLE, str(e))

        return self._parse_response(descriptor, action, response)

    def submit(
        self,
        descriptor: DeviceDescriptor,
        action: Action,
        callback: Optional[Callable[[CommandResult], None]] = None,
    ) -> "asyncio.Task[CommandResult]":
        """
        Start a request without waiting for it.

        Must be called from a running event loop.

        Args:
            descriptor: Target device
            action: Command to send
            callback: Called with the result once the request completes

        Returns:
            Task resolving to the CommandResult
        """
        task = asyncio.get_running_loop().create_task(
            self.send_command(descriptor, action),
            name=f"tasmota:{descriptor.device_id}:{action.value}",
        )
        if callback is not None:
            task.add_done_callback(lambda t: _deliver(t, callback))
        return task

    def send_command_sync(
        self,
        descriptor: DeviceDescriptor,
        action: Action,
    ) -> CommandResult:
        """Send one request, blocking the calling thread until it completes."""
        url = command_url(descriptor, action)
        logger.debug("GET %s (%s, blocking)", url, action.value)

        try:
            response = self._get_sync_client().get(url)
        except httpx.TimeoutException:
            logger.warning("%s timed out after %.1fs", descriptor.device_id, self.timeout)
            return CommandResult.failure(descriptor, action, NetworkError.UNREACHABLE, "timeout")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("%s unreachable: %s", descriptor.device_id, e)
            return CommandResult.failure(descriptor, action, NetworkError.UNREACHABLE, str(e))

        return self._parse_response(descriptor, action, response)

    @staticmethod
    def _parse_response(
        descriptor: DeviceDescriptor,
        action: Action,
        response: httpx.Response,
    ) -> CommandResult:
        """Validate the HTTP response and extract the JSON object."""
        if response.is_error:
            logger.warning(
                "%s rejected %s with HTTP %d",
                descriptor.device_id,
                action.value,
                response.status_code,
            )
            return CommandResult.failure(
                descriptor,
                action,
                NetworkError.UNREACHABLE,
                f"HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("%s returned non-JSON body: %s", descriptor.device_id, e)
            return CommandResult.failure(descriptor, action, NetworkError.BAD_PAYLOAD, "invalid JSON")

        if not isinstance(payload, dict):
            return CommandResult.failure(
                descriptor, action, NetworkError.BAD_PAYLOAD, "expected a JSON object"
            )

        if descriptor.command_key not in payload:
            logger.warning(
                "%s response has no %s key: %s",
                descriptor.device_id,
                descriptor.command_key,
                payload,
            )
            return CommandResult.failure(
                descriptor,
                action,
                NetworkError.BAD_PAYLOAD,
                f"missing {descriptor.command_key}",
            )

        logger.info("%s %s -> %s", descriptor.device_id, action.value, payload)
        return CommandResult.success(descriptor, action, payload)


def _deliver(task: "asyncio.Task[CommandResult]", callback: Callable[[CommandResult], None]) -> None:
    """Hand a finished task's result to a user callback."""
    if task.cancelled():
        return
    if task.exception() is not None:
        # Left for whoever awaits the task
        logger.debug("Request %s raised, callback skipped", task.get_name())
        return
    try:
        callback(task.result())
    except Exception:
        logger.exception("Command callback failed")
