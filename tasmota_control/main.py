"""
Tasmota Control - command line host.

Drives the control dispatcher from a terminal:
- list the configured controls
- print a status snapshot
- toggle / switch a relay
- watch the state stream until interrupted
"""

import argparse
import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Optional

# .env.local overrides .env for machine-specific settings (device address, etc.)
from dotenv import load_dotenv

_env_root = Path(__file__).parent.parent
load_dotenv(_env_root / ".env", override=True)
load_dotenv(_env_root / ".env.local", override=True)

from .capabilities.dispatcher import ControlDispatcher
from .capabilities.tasmota import Action
from .config import ControlConfig, get_settings
from .responses.templates import get_templates

logger = logging.getLogger("tasmota.control.main")

ACTION_COMMANDS = {
    "toggle": Action.TOGGLE,
    "on": Action.TURN_ON,
    "off": Action.TURN_OFF,
}


def setup_logging(level: str) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class ControlApplication:
    """
    Command line application around a ControlDispatcher.

    Manages:
    - Dispatcher lifetime
    - Name lookup for printed output
    - Graceful shutdown of the watch loop
    """

    def __init__(self, config: Optional[ControlConfig] = None):
        self._config = config or get_settings()
        self._dispatcher = ControlDispatcher(config=self._config)
        self._templates = get_templates()
        self._shutdown_event = asyncio.Event()

    def _names(self) -> dict[str, str]:
        return {d.device_id: d.display_name for d in self._dispatcher.list_controls()}

    def _resolve_ids(self, device_ids: list[str]) -> list[str]:
        return device_ids or [d.device_id for d in self._dispatcher.list_controls()]

    def list_controls(self) -> None:
        for descriptor in self._dispatcher.list_controls():
            print(
                f"{descriptor.device_id:<20} {descriptor.display_name:<20} "
                f"{descriptor.category.value:<15} {descriptor.command_url()}"
            )

    async def status(self, device_ids: list[str], as_json: bool = False) -> bool:
        """Print one snapshot of the requested devices. False if any did not respond."""
        names = self._names()
        session = self._dispatcher.open_session(self._resolve_ids(device_ids))
        try:
            await session.wait()
            states = list(session.publisher.snapshot().values())
        finally:
            await self._dispatcher.aclose()

        if as_json:
            print(json.dumps([state.to_dict() for state in states], indent=2))
        else:
            for state in states:
                print(self._templates.describe_state(state, names.get(state.device_id)))
        return all(state.is_reachable for state in states)

    async def act(self, device_id: str, action: Action) -> bool:
        """Send an action and print its outcome."""
        try:
            result = await self._dispatcher.execute(device_id, action)
        finally:
            await self._dispatcher.aclose()
        print(self._templates.action_response(result, self._names().get(device_id)))
        return result.success

    async def watch(self, device_ids: list[str]) -> None:
        """Print state events until interrupted."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._shutdown_event.set)

        names = self._names()
        session = self._dispatcher.open_session(self._resolve_ids(device_ids))
        logger.info("Watching %d devices, Ctrl-C to stop", len(session.device_ids))

        async def _print_events() -> None:
            async for state in session:
                print(self._templates.describe_state(state, names.get(state.device_id)))

        printer = asyncio.create_task(_print_events())
        try:
            await self._shutdown_event.wait()
        finally:
            await self._dispatcher.aclose()
            await printer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tasmota relay control")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: from TASMOTA_LOG_LEVEL or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List configured controls")

    status = sub.add_parser("status", help="Query current state")
    status.add_argument("device_ids", nargs="*", help="Control ids (default: all)")
    status.add_argument("--json", action="store_true", help="Print states as JSON")

    for name, action in ACTION_COMMANDS.items():
        cmd = sub.add_parser(name, help=f"Send {action.value} to a control")
        cmd.add_argument("device_id", help="Control id")

    watch = sub.add_parser("watch", help="Stream state changes")
    watch.add_argument("device_ids", nargs="*", help="Control ids (default: all)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = get_settings()
    setup_logging(args.log_level or config.log_level)

    app = ControlApplication(config)

    if args.command == "list":
        app.list_controls()
        return 0
    if args.command == "status":
        reachable = asyncio.run(app.status(args.device_ids, as_json=args.json))
        return 0 if reachable else 1
    if args.command in ACTION_COMMANDS:
        ok = asyncio.run(app.act(args.device_id, ACTION_COMMANDS[args.command]))
        return 0 if ok else 1
    if args.command == "watch":
        asyncio.run(app.watch(args.device_ids))
        return 0
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
