"""
Process Proxies

Provides a unified interface over one implementation subprocess:
- start(): spawn with configuration injected as environment variables
- stop(): graceful shutdown request, bounded wait, then force_stop()
- force_stop(): kill the whole process group (idempotent)
- ServerProxy.health(): HTTP readiness probe
- ClientProxy.call(): one-shot run, result parsed from the last stdout line
"""

import asyncio
import collections
import json
import logging
import os
import signal
import sys
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

import httpx
from pydantic import ValidationError

from .exceptions import CallError, StartError
from .types import (
    DEFAULT_HEALTH_PATH,
    DEFAULT_SERVER_PORT,
    ClientConfig,
    ClientResult,
    ServerConfig,
)

logger = logging.getLogger(__name__)

# 402 means the server is up and answering its payment gate
HEALTHY_STATUS_CODES = (200, 402)

DEFAULT_CALL_TIMEOUT = 300.0


class ProcessState(str, Enum):
    """Lifecycle state of a proxied process"""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class BaseProxy:
    """
    Base proxy for managing one subprocess.

    The proxy owns the process handle. Processes are started in their own
    process group so that launcher scripts and their children are stopped
    together.

    Usage:
        proxy = ServerProxy("express", directory, ["bash", "run.sh"])
        try:
            await proxy.start(config)
            ...
        finally:
            await proxy.stop()
    """

    def __init__(
        self,
        name: str,
        working_dir: Path,
        command: Sequence[str],
        start_grace: float = 0.5,
        stop_timeout: float = 5.0,
        output_lines: int = 50,
    ):
        self.name = name
        self.working_dir = Path(working_dir)
        self.command = list(command)
        self.start_grace = start_grace
        self.stop_timeout = stop_timeout
        self.state = ProcessState.STOPPED
        self._process: Optional[asyncio.subprocess.Process] = None
        self._log_task: Optional[asyncio.Task] = None
        self._output: collections.deque[str] = collections.deque(maxlen=output_lines)

    @property
    def is_running(self) -> bool:
        """Check if process is running"""
        if self._process is None:
            return False
        return self._process.returncode is None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def output(self) -> str:
        """Most recent output lines of the process"""
        return "\n".join(self._output)

    async def start(self, config) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        """Request graceful shutdown, then force-stop whatever is left."""
        process = self._process
        if process is None:
            self.state = ProcessState.STOPPED
            return

        if process.returncode is None:
            self.state = ProcessState.STOPPING
            await self._request_shutdown(process)
            try:
                await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.debug(
                    "[%s] did not exit within %.1fs, killing",
                    self.name,
                    self.stop_timeout,
                )

        await self.force_stop()

    async def force_stop(self) -> None:
        """Kill the process group if anything is left and release the handle."""
        process = self._process
        if process is None:
            self.state = ProcessState.STOPPED
            return

        # The leader may be gone while children it spawned are still alive
        self._send_signal(process, graceful=False)
        if process.returncode is None:
            await process.wait()

        await self._release()

    async def _spawn(
        self,
        env_overrides: dict[str, str],
        stream_output: bool,
    ) -> asyncio.subprocess.Process:
        if self.is_running:
            raise StartError(self.name, "process is already running")
        if self._process is not None:
            await self.force_stop()

        env = os.environ.copy()
        env.update(env_overrides)
        self._output.clear()
        self.state = ProcessState.STARTING

        logger.debug(
            "[%s] starting: %s (cwd=%s)",
            self.name,
            " ".join(self.command),
            self.working_dir,
        )
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                cwd=self.working_dir,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if stream_output else asyncio.subprocess.PIPE,
                start_new_session=sys.platform != "win32",
            )
        except OSError as e:
            self.state = ProcessState.STOPPED
            raise StartError(self.name, str(e)) from e

        if stream_output:
            self._log_task = asyncio.create_task(self._stream_logs(self._process))

        return self._process

    async def _wait_startup(self, process: asyncio.subprocess.Process) -> None:
        """Fail if the process dies within the start grace period."""
        if self.start_grace > 0:
            try:
                await asyncio.wait_for(process.wait(), timeout=self.start_grace)
            except asyncio.TimeoutError:
                pass

        if process.returncode is not None:
            exit_code = process.returncode
            await self.force_stop()
            raise StartError(
                self.name,
                "process exited during startup",
                exit_code=exit_code,
                output=self.output,
            )

        self.state = ProcessState.RUNNING

    async def _request_shutdown(self, process: asyncio.subprocess.Process) -> None:
        self._send_signal(process, graceful=True)

    def _send_signal(self, process: asyncio.subprocess.Process, graceful: bool) -> None:
        try:
            if sys.platform != "win32":
                os.killpg(process.pid, signal.SIGTERM if graceful else signal.SIGKILL)
            elif process.returncode is None:
                if graceful:
                    process.terminate()
                else:
                    process.kill()
        except (ProcessLookupError, PermissionError):
            pass

    async def _release(self) -> None:
        if self._log_task is not None:
            done, _ = await asyncio.wait([self._log_task], timeout=1.0)
            if not done:
                self._log_task.cancel()
                try:
                    await self._log_task
                except asyncio.CancelledError:
                    pass
            self._log_task = None

        self._process = None
        self.state = ProcessState.STOPPED

    async def _stream_logs(self, process: asyncio.subprocess.Process) -> None:
        """Forward process output to the verbose log"""
        if process.stdout is None:
            return

        try:
            async for raw in process.stdout:
                line = raw.decode(errors="replace").rstrip()
                if not line:
                    continue
                self._output.append(line)
                logger.debug("[%s] %s", self.name, line)
                if "listening" in line.lower():
                    logger.debug("[%s] reported ready", self.name)
        except Exception as e:
            logger.debug("[%s] log streaming error: %s", self.name, e)


class ServerProxy(BaseProxy):
    """Proxy for a long-running server implementation"""

    def __init__(
        self,
        name: str,
        working_dir: Path,
        command: Sequence[str],
        health_path: str = DEFAULT_HEALTH_PATH,
        probe_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        super().__init__(name, working_dir, command, **kwargs)
        self.health_path = health_path
        self.probe_timeout = probe_timeout
        self.host = "localhost"
        self.port = DEFAULT_SERVER_PORT
        self._transport = transport

    @property
    def url(self) -> str:
        """Get service base URL"""
        return f"http://{self.host}:{self.port}"

    async def start(self, config: ServerConfig) -> None:
        self.host = config.host
        self.port = config.port
        process = await self._spawn(config.to_env(), stream_output=True)
        await self._wait_startup(process)

    async def health(self) -> dict:
        """
        Probe the server's health route.

        Returns:
            {"success": bool}; network errors count as unhealthy
        """
        if self._process is not None and self._process.returncode is not None:
            return {"success": False}

        try:
            async with self._http_client() as client:
                response = await client.get(f"{self.url}{self.health_path}")
            return {"success": response.status_code in HEALTHY_STATUS_CODES}
        except Exception as e:
            logger.debug("[%s] health probe failed: %s", self.name, e)
            return {"success": False}

    async def _request_shutdown(self, process: asyncio.subprocess.Process) -> None:
        try:
            async with self._http_client() as client:
                await client.post(f"{self.url}/close")
        except Exception as e:
            # The server may drop the connection while exiting
            logger.debug("[%s] close request: %s", self.name, e)

        await super()._request_shutdown(process)

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.probe_timeout, transport=self._transport)


class ClientProxy(BaseProxy):
    """Proxy for a one-shot client implementation"""

    def __init__(
        self,
        name: str,
        working_dir: Path,
        command: Sequence[str],
        call_timeout: Optional[float] = DEFAULT_CALL_TIMEOUT,
        **kwargs,
    ):
        super().__init__(name, working_dir, command, **kwargs)
        self.call_timeout = call_timeout

    async def start(self, config: ClientConfig) -> None:
        await self._spawn(config.to_env(), stream_output=False)
        self.state = ProcessState.RUNNING

    async def call(self, config: ClientConfig) -> ClientResult:
        """
        Run the client against a server and collect its result.

        Failures of any kind are reported in the returned result.
        """
        try:
            await self.start(config)
        except StartError as e:
            return ClientResult(success=False, error=str(e))

        process = self._process
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError:
            await self.force_stop()
            error = CallError(f"{self.name} did not finish within {self.call_timeout}s")
            return ClientResult(success=False, error=str(error))

        exit_code = process.returncode
        await self.force_stop()

        stdout_text = stdout.decode(errors="replace") if stdout else ""
        stderr_text = stderr.decode(errors="replace") if stderr else ""
        for line in (stdout_text + stderr_text).splitlines():
            if line.strip():
                self._output.append(line.rstrip())
                logger.debug("[%s] %s", self.name, line.rstrip())

        return parse_client_output(stdout_text, exit_code, stderr_text)


def parse_client_output(stdout: str, exit_code: int, stderr: str = "") -> ClientResult:
    """
    Interpret a client's stdout and exit code.

    Only the last non-empty stdout line is parsed; anything before it is
    free-form logging.
    """
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    if not lines:
        return ClientResult(
            success=False,
            error=_with_stderr(f"Client produced no output (exit code {exit_code})", stderr),
        )

    try:
        result = ClientResult.model_validate(json.loads(lines[-1]))
    except (json.JSONDecodeError, ValidationError) as e:
        return ClientResult(
            success=False,
            error=_with_stderr(
                f"Failed to parse client output: {e.__class__.__name__}: {lines[-1][:200]}",
                stderr,
            ),
        )

    if exit_code != 0:
        if result.success:
            return ClientResult(
                success=False,
                error=f"Client reported success but exited with code {exit_code}",
            )
        if not result.error:
            return result.model_copy(update={"error": f"Client exited with code {exit_code}"})
        return result

    if not result.success and not result.error:
        return result.model_copy(update={"error": "Client reported failure without an error"})

    return result


def _with_stderr(message: str, stderr: str) -> str:
    tail = [line for line in stderr.splitlines() if line.strip()]
    if tail:
        return f"{message}; stderr: {tail[-1].strip()}"
    return message
