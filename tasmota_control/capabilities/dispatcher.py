"""
Control dispatcher.

Entry points used by the host: enumerate controls, open a state
session and perform actions. Every entry point returns without
waiting on the network; results arrive through the session stream
and the per-action acknowledgment.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..config import ControlConfig, get_settings
from ..devices.models import DeviceDescriptor, DeviceState
from ..devices.registry import DeviceRegistry, build_registry
from ..state.publisher import Subscription, UpdatePublisher
from ..state.reconciler import reconcile, unreachable_state
from .tasmota import Action, CommandResult, NetworkError, TasmotaClient

logger = logging.getLogger("tasmota.control.capabilities.dispatcher")


class AckSignal(Enum):
    """Acknowledgment returned to the caller of an action."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class ActionResult:
    """Result from executing an action."""

    device_id: str
    action: Action
    ack: AckSignal
    state: Optional[DeviceState] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.ack == AckSignal.ACCEPTED


class ControlSession:
    """
    One state subscription session.

    Owns the publisher for the session and the status queries it
    started. Iterating the session opens a new subscription.
    """

    def __init__(self, device_ids: Iterable[str], publisher: UpdatePublisher):
        self.device_ids = frozenset(device_ids)
        self.publisher = publisher
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of status queries still in flight."""
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self.publisher.completed

    def subscribe(self) -> Subscription:
        """Open an independent subscription with full replay."""
        return self.publisher.subscribe()

    def __aiter__(self) -> Subscription:
        return self.subscribe()

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait(self) -> None:
        """Wait until every initial status query has published."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def detach(self) -> None:
        """
        End the stream without cancelling in-flight queries.

        Late results are dropped by the completed publisher.
        """
        self.publisher.complete()

    async def aclose(self) -> None:
        """Cancel pending queries and end the stream."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.publisher.complete()


class ControlDispatcher:
    """
    Control dispatcher for Tasmota relays.

    Handles:
    - Registry rebuild on every entry point
    - Status snapshots for a subscription session
    - Actions with exactly-once acknowledgment
    """

    def __init__(
        self,
        client: Optional[TasmotaClient] = None,
        config: Optional[ControlConfig] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            client: Tasmota client (created from config if None)
            config: Settings used to build the registry
        """
        self._config = config or get_settings()
        self._client = client or TasmotaClient(timeout=self._config.host.request_timeout)
        self._session: Optional[ControlSession] = None
        self._actions: set[asyncio.Task] = set()

    @property
    def client(self) -> TasmotaClient:
        return self._client

    @property
    def session(self) -> Optional[ControlSession]:
        """The current session, if one has been opened."""
        return self._session

    def _registry(self) -> DeviceRegistry:
        return build_registry(self._config)

    def list_controls(self) -> list[DeviceDescriptor]:
        """Return every controllable device. No network access."""
        return self._registry().list_all()

    def open_session(self, device_ids: Iterable[str]) -> ControlSession:
        """
        Start a state session for the given devices.

        Returns immediately; a status query is started per known device
        and its reconciled state is published when it completes. Unknown
        ids are published as unreachable straight away.

        Must be called from a running event loop.

        Args:
            device_ids: Devices the caller wants to observe

        Returns:
            ControlSession whose stream replays everything published
        """
        loop = asyncio.get_running_loop()
        registry = self._registry()
        device_ids = list(dict.fromkeys(device_ids))

        previous = self._session
        if previous is not None:
            logger.info(
                "Replacing previous session (%d subscribers)",
                previous.publisher.subscriber_count,
            )
            previous.detach()

        publisher = UpdatePublisher(max_history=self._config.replay_history)
        session = ControlSession(device_ids, publisher)
        self._session = session
        logger.info("Opening session for %s", ", ".join(device_ids) or "no devices")

        for device_id in device_ids:
            descriptor = registry.lookup(device_id)
            if descriptor is None:
                logger.warning("Session requested unknown device %s", device_id)
                publisher.publish(unreachable_state(device_id))
                continue
            session._track(
                loop.create_task(
                    self._sync_device(descriptor, publisher),
                    name=f"session:{device_id}",
                )
            )

        return session

    async def _sync_device(self, descriptor: DeviceDescriptor, publisher: UpdatePublisher) -> None:
        try:
            result = await self._client.send_command(descriptor, Action.QUERY_STATUS)
        except Exception as e:
            logger.error("Status query for %s failed: %s", descriptor.device_id, e, exc_info=True)
            publisher.publish(unreachable_state(descriptor.device_id))
            return
        publisher.publish(reconcile(descriptor, result))

    def perform_action(
        self,
        device_id: str,
        action: Action = Action.TOGGLE,
        consumer: Optional[Callable[[AckSignal], None]] = None,
    ) -> "asyncio.Future[AckSignal]":
        """
        Perform an action on a device.

        The returned future (and consumer, if given) is resolved exactly
        once. On acceptance the state derived from the command response
        is published to the current session.

        Must be called from a running event loop.

        Args:
            device_id: Target device
            action: Command to send (toggle by default)
            consumer: Optional callback receiving the acknowledgment

        Returns:
            Future resolving to ACCEPTED or REJECTED
        """
        loop = asyncio.get_running_loop()
        ack: asyncio.Future[AckSignal] = loop.create_future()

        descriptor = self._registry().lookup(device_id)
        if descriptor is None:
            logger.warning("Rejected %s: unknown device %s", action.value, device_id)
            _resolve(ack, consumer, AckSignal.REJECTED)
            return ack

        task = self._client.submit(
            descriptor,
            action,
            callback=lambda result: self._complete_action(descriptor, action, result, ack, consumer),
        )
        self._actions.add(task)
        task.add_done_callback(self._actions.discard)
        task.add_done_callback(lambda t: self._action_aborted(t, descriptor, action, ack, consumer))
        return ack

    def _action_aborted(
        self,
        task: "asyncio.Task[CommandResult]",
        descriptor: DeviceDescriptor,
        action: Action,
        ack: "asyncio.Future[AckSignal]",
        consumer: Optional[Callable[[AckSignal], None]],
    ) -> None:
        # Normal completions were acknowledged by the submit callback
        if ack.done():
            return
        if task.cancelled():
            logger.info("%s on %s cancelled", action.value, descriptor.device_id)
        elif task.exception() is not None:
            e = task.exception()
            logger.error("%s on %s failed: %s", action.value, descriptor.device_id, e, exc_info=e)
        else:
            return
        _resolve(ack, consumer, AckSignal.REJECTED)

    async def _run_action(
        self,
        descriptor: DeviceDescriptor,
        action: Action,
        ack: "asyncio.Future[AckSignal]",
        consumer: Optional[Callable[[AckSignal], None]],
    ) -> ActionResult:
        try:
            result = await self._client.send_command(descriptor, action)
        except asyncio.CancelledError:
            _resolve(ack, consumer, AckSignal.REJECTED)
            raise
        except Exception as e:
            logger.error("%s on %s failed: %s", action.value, descriptor.device_id, e, exc_info=True)
            _resolve(ack, consumer, AckSignal.REJECTED)
            return ActionResult(
                device_id=descriptor.device_id,
                action=action,
                ack=AckSignal.REJECTED,
                error=str(e),
            )

        return self._complete_action(descriptor, action, result, ack, consumer)

    def _complete_action(
        self,
        descriptor: DeviceDescriptor,
        action: Action,
        result: CommandResult,
        ack: "asyncio.Future[AckSignal]",
        consumer: Optional[Callable[[AckSignal], None]],
    ) -> ActionResult:
        if result.error == NetworkError.UNREACHABLE:
            # Keep the last known state rather than flashing unknown
            logger.warning(
                "%s on %s failed: %s",
                action.value,
                descriptor.device_id,
                result.detail,
            )
            _resolve(ack, consumer, AckSignal.REJECTED)
            return ActionResult(
                device_id=descriptor.device_id,
                action=action,
                ack=AckSignal.REJECTED,
                error=result.detail or result.error.value,
            )

        _resolve(ack, consumer, AckSignal.ACCEPTED)

        state = reconcile(descriptor, result)
        session = self._session
        if session is not None:
            session.publisher.publish(state)
        else:
            logger.debug("No session open, %s state not published", descriptor.device_id)

        return ActionResult(
            device_id=descriptor.device_id,
            action=action,
            ack=AckSignal.ACCEPTED,
            state=state,
            error=result.detail if result.error else None,
        )

    async def execute(self, device_id: str, action: Action = Action.TOGGLE) -> ActionResult:
        """
        Perform an action and wait for its outcome.

        Args:
            device_id: Target device
            action: Command to send

        Returns:
            ActionResult with acknowledgment and resulting state
        """
        loop = asyncio.get_running_loop()
        ack: asyncio.Future[AckSignal] = loop.create_future()

        descriptor = self._registry().lookup(device_id)
        if descriptor is None:
            logger.warning("Rejected %s: unknown device %s", action.value, device_id)
            return ActionResult(
                device_id=device_id,
                action=action,
                ack=AckSignal.REJECTED,
                error="device_not_found",
            )

        return await self._run_action(descriptor, action, ack, None)

    async def aclose(self) -> None:
        """Close the current session, wait for actions and release the client."""
        if self._session is not None:
            await self._session.aclose()
        if self._actions:
            await asyncio.gather(*list(self._actions), return_exceptions=True)
        await self._client.aclose()


def _resolve(
    ack: "asyncio.Future[AckSignal]",
    consumer: Optional[Callable[[AckSignal], None]],
    signal: AckSignal,
) -> None:
    """Resolve an acknowledgment and notify the consumer. Called once per action."""
    if not ack.done():
        ack.set_result(signal)
    if consumer is None:
        return
    try:
        consumer(signal)
    except Exception:
        logger.exception("Acknowledgment consumer failed")
