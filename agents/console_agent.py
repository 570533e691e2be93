"""
Console Agent - Chat with the bot from a terminal

Reads one message per line from stdin and prints the rendered reply.
Useful for trying out instructions and link expansion without Slack.
"""

import asyncio
import sys
from typing import Optional, TextIO

from agent_platform import Agent, AgentPlatform

CONSOLE_USER = "User"


class ConsoleAgent(Agent):
    """Interactive stdin/stdout front-end"""

    def __init__(
        self,
        platform: AgentPlatform,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        super().__init__("console_agent", platform)
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.orchestrator = platform.orchestrator

    async def _read_line(self) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.stdin.readline)

    async def run(self):
        """Chat until end of input"""
        while True:
            self.stdout.write("\nInput: ")
            self.stdout.flush()

            line = await self._read_line()
            if not line:
                break

            message = line.strip()
            if not message:
                continue

            reply = await self.orchestrator.chat(CONSOLE_USER, message)
            if reply.error is not None:
                self.logger.error(f"failed to call chat: {reply.error}")

            self.stdout.write(f"\n{reply.text}\n\n")
            self.stdout.flush()

        return True
