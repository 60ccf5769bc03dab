"""
Focus-follows-mouse CLI

Runs the daemon and sends control commands to a running instance. Commands
travel as i3 IPC tick events (payload ``ffm:<command>``), so i3/Sway
bindings can do the same with ``i3-msg -t send_tick ffm:toggle``.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from i3ipc import aio

from . import __version__
from .backends.sway import TICK_PREFIX
from .config import default_config_path, load_config
from .errors import ConfigLoadError
from .models import ControlCommand


class FfmCLI:
    """CLI client for the focus-follows-mouse daemon."""

    async def send_command(self, command: ControlCommand) -> bool:
        """Send a control command to the daemon as an i3 tick.

        Raises:
            ConnectionError: If i3/Sway cannot be reached
        """
        try:
            conn = await aio.Connection().connect()
        except Exception as e:
            raise ConnectionError(f"Cannot connect to i3/Sway: {e}")

        try:
            reply = await conn.send_tick(f"{TICK_PREFIX}{command.value}")
        finally:
            conn.main_quit()
        return bool(getattr(reply, "success", False))

    def cmd_run(self, args) -> int:
        """Run the daemon in the foreground."""
        from .daemon import run_daemon

        return run_daemon(
            config_file=args.config,
            log_level=args.log_level,
            hotkeys_enabled=not args.no_hotkeys,
        )

    def cmd_send(self, args) -> int:
        """Send a control command."""
        command = ControlCommand.from_str(args.action)
        try:
            ok = asyncio.run(self.send_command(command))
        except ConnectionError as e:
            print(f"❌ {e}")
            return 1

        if ok:
            print(f"✅ Sent {command.value}")
            return 0
        print(f"❌ Window manager rejected tick for {command.value}")
        return 1

    def cmd_check_config(self, args) -> int:
        """Validate the config file."""
        path = args.config or default_config_path()
        try:
            load_config(path)
        except ConfigLoadError as e:
            print(f"❌ {e.message}")
            if e.suggestion:
                print(f"  → {e.suggestion}")
            return 1

        if path.exists():
            print(f"✅ Configuration valid: {path}")
        else:
            print(f"✅ No config file at {path}, defaults apply")
        return 0

    def cmd_show_config(self, args) -> int:
        """Print the effective configuration as JSON."""
        path = args.config or default_config_path()
        try:
            config = load_config(path)
        except ConfigLoadError as e:
            print(json.dumps({"error": e.to_dict()}, indent=2))
            return 1

        print(json.dumps({"path": str(path), "config": config.model_dump()}, indent=2))
        return 0

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Focus follows mouse across i3/Sway outputs",
            prog="ffm",
        )
        parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

        subparsers = parser.add_subparsers(dest="command", help="Command to execute")

        run_parser = subparsers.add_parser("run", help="Run the daemon")
        run_parser.add_argument("--config", type=Path, help="Config file (default: ~/.config/ffm/config.toml)")
        run_parser.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"],
            type=str.upper,
            help="Log level (default: $LOG_LEVEL or INFO)",
        )
        run_parser.add_argument("--no-hotkeys", action="store_true", help="Don't register global hotkeys")

        send_parser = subparsers.add_parser("send", help="Send a command to the running daemon")
        send_parser.add_argument("action", choices=[c.value for c in ControlCommand])

        check_parser = subparsers.add_parser("check-config", help="Validate the config file")
        check_parser.add_argument("--config", type=Path)

        show_parser = subparsers.add_parser("show-config", help="Show the effective configuration")
        show_parser.add_argument("--config", type=Path)

        return parser

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run CLI."""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 1

        cmd_map = {
            "run": self.cmd_run,
            "send": self.cmd_send,
            "check-config": self.cmd_check_config,
            "show-config": self.cmd_show_config,
        }

        try:
            return cmd_map[args.command](args)
        except KeyboardInterrupt:
            print("\nInterrupted")
            return 130


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    return FfmCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
