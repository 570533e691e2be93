#!/usr/bin/env python3
"""
Lurch Launcher - Entry point for the bot service

Usage:
    lurch ./bots/tyk          # Slack Socket Mode service
    lurch ./bots/tyk chat     # interactive console

Secrets (Slack tokens) come from the environment or from
`<bot_dir>/secrets.env`. Logs go to stderr and $LURCH_LOG_DIR/lurch.log.
"""

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Dict, Optional

from agent_platform import AgentPlatform, configure_logging
from lurch.exceptions import SettingsError
from lurch.settings import BotSettings

SECRETS_FILE = "secrets.env"

SLACK_VARIABLES = {
    "SLACK_BOT_TOKEN": "Bot token from api.slack.com (xoxb-...)",
    "SLACK_APP_TOKEN": "App token for Socket Mode (xapp-...)",
}


def parse_env_file(path: Path) -> Dict[str, str]:
    """
    Read `KEY=value` pairs from a shell-style env file.

    Blank lines, comments and lines without `=` are skipped; an `export `
    prefix and surrounding quotes are dropped.
    """
    values = {}
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):]

        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


class LurchService:
    """Runs one bot directory as a Slack service or a console chat"""

    def __init__(self, bot_dir: str, mode: str = "slack"):
        self.bot_dir = Path(bot_dir)
        self.mode = mode
        self.platform: Optional[AgentPlatform] = None
        self.agent = None
        self.shutdown_event = asyncio.Event()

    def load_secrets(self):
        """Fill missing environment variables from secrets.env, if present"""
        secrets_file = self.bot_dir / SECRETS_FILE
        if not secrets_file.exists():
            print(f"⚠️  {secrets_file} not found, relying on the environment")
            return

        loaded = [
            key
            for key, value in parse_env_file(secrets_file).items()
            if os.environ.setdefault(key, value) == value
        ]
        print(f"📝 Loaded {len(loaded)} secrets from {secrets_file}")

    def validate_environment(self):
        """Exit when Slack mode lacks its tokens"""
        missing = [name for name in SLACK_VARIABLES if not os.getenv(name)]
        if not missing:
            return

        print(f"❌ Missing required environment variables: {', '.join(missing)}")
        for name, meaning in SLACK_VARIABLES.items():
            print(f"  {name:<17} - {meaning}")
        sys.exit(1)

    def setup_signals(self):
        """Set the shutdown event on SIGINT / SIGTERM"""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self.shutdown_event.set)

    def create_agent(self):
        if self.mode == "chat":
            from agents.console_agent import ConsoleAgent

            return ConsoleAgent(self.platform)

        from agents.slack_agent import SlackAgent

        return SlackAgent(self.platform)

    async def _supervise(self):
        """Run the agent until it stops or a shutdown signal arrives"""
        service = asyncio.create_task(self.platform.start_service(self.agent))
        stop = asyncio.create_task(self.shutdown_event.wait())

        await asyncio.wait([service, stop], return_when=asyncio.FIRST_COMPLETED)

        if stop.done():
            print("\n📡 Shutdown requested")
            if hasattr(self.agent, "shutdown"):
                await self.agent.shutdown()
            service.cancel()
        else:
            stop.cancel()

        try:
            await service
        except asyncio.CancelledError:
            pass

    async def run(self):
        configure_logging(Path(os.getenv("LURCH_LOG_DIR", "logs")))

        self.load_secrets()
        if self.mode == "slack":
            self.validate_environment()

        settings = BotSettings.from_directory(self.bot_dir)
        self.setup_signals()

        print(f"🤖 Starting {settings.bot_dir.name} ({self.mode} mode, model {settings.model})")
        self.platform = AgentPlatform(settings)
        try:
            self.agent = self.create_agent()
            await self._supervise()
            print("👋 Bot stopped")
        finally:
            await self.platform.close()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="lurch", description="Slack assistant with link expansion"
    )
    parser.add_argument("bot_dir", help="Bot configuration directory, e.g. ./bots/tyk")
    parser.add_argument(
        "mode",
        nargs="?",
        default="slack",
        choices=["slack", "chat"],
        help="Run as Slack service (default) or interactive console",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    service = LurchService(args.bot_dir, args.mode)

    try:
        asyncio.run(service.run())
    except SettingsError as e:
        print(f"\n❌ Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"\n💥 Service crashed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
