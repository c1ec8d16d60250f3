"""Coding agent invocation through a configured shell command."""

import shlex
from pathlib import Path
from typing import Optional, Union

from prloop.models import AgentConfig
from prloop.utils.logger import get_logger
from prloop.utils.shell import ShellError, run_command

logger = get_logger(__name__)


class AgentError(Exception):
    """Coding agent invocation error."""
    pass


class CommandAgent:
    """Runs the agent command with the prompt on stdin and returns its stdout."""

    def __init__(self, config: AgentConfig, cwd: Optional[Union[str, Path]] = None):
        self.command = shlex.split(config.command)
        self.timeout = config.timeout
        self.cwd = cwd

    def __call__(self, prompt: str) -> str:
        """Run the agent.

        Raises:
            AgentError: If the command fails or times out
        """
        logger.debug(f"Invoking agent {self.command[0]} with a {len(prompt)} character prompt")
        try:
            result = run_command(
                self.command,
                cwd=self.cwd,
                check=True,
                timeout=self.timeout,
                input_data=prompt,
            )
        except ShellError as e:
            raise AgentError(f"Agent command failed: {e.stderr or e}") from e
        return result.stdout
