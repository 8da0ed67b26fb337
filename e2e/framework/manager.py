"""
Scenario Runner

Owns the lifecycle of one scenario: start the server, wait until it is
healthy, call the client, and always stop both processes afterwards.
"""

import asyncio
import json
import logging
from dataclasses import asdict
from enum import Enum
from typing import Awaitable, Callable, Optional

from .env import EnvConfig
from .exceptions import CleanupError, HealthCheckTimeout
from .proxy import DEFAULT_CALL_TIMEOUT
from .scenarios import TestScenario
from .types import ClientConfig, ScenarioResult, ServerConfig

logger = logging.getLogger(__name__)

MAX_HEALTH_CHECK_ATTEMPTS = 10
HEALTH_CHECK_INTERVAL = 2.0

Sleep = Callable[[float], Awaitable[None]]


class RunnerState(str, Enum):
    IDLE = "idle"
    SERVER_STARTING = "server_starting"
    HEALTH_CHECKING = "health_checking"
    CLIENT_CALLING = "client_calling"
    COMPLETE = "complete"
    CLEANUP = "cleanup"


class ScenarioRunner:
    """
    Runs scenarios one at a time.

    Usage:
        runner = ScenarioRunner()
        result = await runner.run(scenario, env_config)
    """

    def __init__(
        self,
        health_attempts: int = MAX_HEALTH_CHECK_ATTEMPTS,
        health_interval: float = HEALTH_CHECK_INTERVAL,
        call_timeout: Optional[float] = DEFAULT_CALL_TIMEOUT,
        sleep: Sleep = asyncio.sleep,
    ):
        self.health_attempts = health_attempts
        self.health_interval = health_interval
        self.call_timeout = call_timeout
        self._sleep = sleep
        self.state = RunnerState.IDLE

    async def run(self, scenario: TestScenario, env_config: EnvConfig) -> ScenarioResult:
        """Run one generated scenario with fresh server and client processes"""
        server_config = ServerConfig(
            port=env_config.server_port,
            use_cdp_facilitator=scenario.combo.use_cdp_facilitator,
            pay_to=env_config.server_address,
            network=scenario.combo.network,
        )
        client_config = ClientConfig(
            private_key=env_config.client_private_key,
            server_url=server_config.url,
            endpoint_path=scenario.endpoint.path,
        )

        server = scenario.server.launch()
        client = scenario.client.launch(call_timeout=self.call_timeout)
        return await self.run_scenario(server, client, server_config, client_config)

    async def run_scenario(
        self,
        server,
        client,
        server_config: ServerConfig,
        client_config: ClientConfig,
    ) -> ScenarioResult:
        """
        Drive one server/client pair through the call-protected flow.

        Exceptions are converted into a failed result. Cleanup runs exactly
        once on every path, including cancellation.
        """
        self.state = RunnerState.IDLE
        try:
            self.state = RunnerState.SERVER_STARTING
            logger.debug("  🚀 Starting server with config: %s", _dump(asdict(server_config)))
            await server.start(server_config)

            self.state = RunnerState.HEALTH_CHECKING
            if not await self._wait_healthy(server):
                error = HealthCheckTimeout(self.health_attempts)
                logger.debug("  ❌ %s", error)
                self.state = RunnerState.COMPLETE
                return ScenarioResult(success=False, error=str(error))

            self.state = RunnerState.CLIENT_CALLING
            logger.debug(
                "  📞 Making client call with config: %s",
                _dump({**asdict(client_config), "private_key": "***"}),
            )
            result = await client.call(client_config)
            logger.debug("  📊 Client call result: %s", _dump(result.model_dump(exclude_none=True)))

            self.state = RunnerState.COMPLETE
            if result.success:
                return ScenarioResult(
                    success=True,
                    data=result.data,
                    status_code=result.status_code,
                    payment_response=result.payment_response,
                )
            return ScenarioResult(
                success=False,
                error=result.error,
                status_code=result.status_code,
            )

        except Exception as e:
            logger.debug("  💥 Scenario failed with error: %r", e)
            self.state = RunnerState.COMPLETE
            return ScenarioResult(success=False, error=str(e) or e.__class__.__name__)

        finally:
            self.state = RunnerState.CLEANUP
            logger.debug("  🧹 Cleaning up server and client processes")
            await self._cleanup(server.stop, "server")
            await self._cleanup(client.force_stop, "client")

    async def _wait_healthy(self, server) -> bool:
        for attempt in range(1, self.health_attempts + 1):
            health = await server.health()
            healthy = bool(health.get("success"))
            logger.debug(
                "  🔍 Health check attempt %d/%d: %s",
                attempt,
                self.health_attempts,
                "✅" if healthy else "❌",
            )
            if healthy:
                logger.debug("  ✅ Server is healthy after %d attempts", attempt)
                return True
            if attempt < self.health_attempts:
                await self._sleep(self.health_interval)
        return False

    async def _cleanup(self, stop: Callable[[], Awaitable[None]], role: str) -> None:
        try:
            await stop()
        except Exception as e:
            error = CleanupError(f"Failed to stop {role}: {e}")
            logger.warning("  ⚠️  %s", error)


def _dump(value) -> str:
    return json.dumps(value, indent=2, default=str)
