"""
Runners for the starknet CLI

Every network operation of the devkit is a `starknet` CLI invocation.
A wrapper runs one command and returns its exit status and output; it
never interprets the output itself.

Design Notes:
- VenvWrapper runs the CLI from a Python virtualenv, or from PATH
- DockerWrapper runs it inside the shardlabs/cairo-cli image, bind
  mounting every file the command reads
- Each wrapper rewrites network URLs so they are reachable from where
  the CLI actually runs
- asyncio subprocesses, so concurrent commands do not block each other
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..utils.exceptions import ConfigurationError

LOG = logging.getLogger(__name__)

DOCKER_REPOSITORY = "shardlabs/cairo-cli"
DEFAULT_DOCKER_IMAGE_TAG = "0.8.1"
DOCKER_HOST = "host.docker.internal"
DOCKER_HOST_BRIDGE = "host-gateway"
LOCAL_HOST_PATTERN = re.compile(r"^(https?://)(localhost|127\.0\.0\.1)(?=[:/]|$)")


@dataclass
class ProcessResult:
    """Exit status and decoded output of one CLI run"""
    status_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.status_code == 0


class StarknetWrapper:
    """Base class for CLI runners"""

    async def run_command(
        self,
        command: str,
        args: Sequence[str],
        paths: Optional[Sequence[str]] = None
    ) -> ProcessResult:
        """
        Run a CLI command.

        Args:
            command: Executable name, e.g. "starknet"
            args: Command arguments
            paths: Files the command reads, for runners that need to
                make them visible

        Returns:
            ProcessResult with the exit status and decoded output
        """
        argv = self.prepare_command(command, list(args), list(paths or []))
        LOG.debug(f"Running: {' '.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            # A missing executable behaves like a failed command
            LOG.error(f"Could not start {argv[0]}: {e}")
            return ProcessResult(status_code=127, stdout="", stderr=str(e))

        stdout, stderr = await process.communicate()
        result = ProcessResult(
            status_code=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        LOG.debug(f"{command} exited with status {result.status_code}")
        return result

    def prepare_command(self, command: str, args: List[str], paths: List[str]) -> List[str]:
        raise NotImplementedError

    def adapt_url(self, url: str) -> str:
        """Return url as seen from the CLI's environment, without trailing slash"""
        return url.rstrip("/")


class VenvWrapper(StarknetWrapper):
    """
    Runs the CLI installed in a virtualenv.

    With venv=None (or "active") the command is looked up on PATH.
    """

    def __init__(self, venv: Optional[str] = None):
        if venv == "active":
            venv = None
        if venv is not None:
            bin_dir = Path(venv).expanduser() / "bin"
            if not bin_dir.is_dir():
                raise ConfigurationError(
                    f"Invalid venv path: {venv} has no bin directory",
                    field="starknet.venv"
                )
            self.bin_dir: Optional[Path] = bin_dir
        else:
            self.bin_dir = None

    def prepare_command(self, command: str, args: List[str], paths: List[str]) -> List[str]:
        executable = str(self.bin_dir / command) if self.bin_dir else command
        return [executable, *args]


class DockerWrapper(StarknetWrapper):
    """Runs the CLI inside a cairo-cli image"""

    def __init__(self, image: str):
        self.image = image

    @classmethod
    def from_version(cls, version: str = DEFAULT_DOCKER_IMAGE_TAG) -> "DockerWrapper":
        return cls(f"{DOCKER_REPOSITORY}:{version}")

    def prepare_command(self, command: str, args: List[str], paths: List[str]) -> List[str]:
        argv = ["docker", "run", "--rm", "--add-host", f"{DOCKER_HOST}:{DOCKER_HOST_BRIDGE}"]
        for path in paths:
            absolute = os.path.abspath(path)
            argv.extend(["-v", f"{absolute}:{absolute}:ro"])
        argv.append(self.image)
        argv.append(command)
        argv.extend(self._absolute_path_args(args, paths))
        return argv

    @staticmethod
    def _absolute_path_args(args: List[str], paths: List[str]) -> List[str]:
        # Mounted files live at their absolute path inside the container
        mounted = {path: os.path.abspath(path) for path in paths}
        return [mounted.get(arg, arg) for arg in args]

    def adapt_url(self, url: str) -> str:
        return LOCAL_HOST_PATTERN.sub(rf"\g<1>{DOCKER_HOST}", super().adapt_url(url))
