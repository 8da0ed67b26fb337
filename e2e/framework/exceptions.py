"""
E2E harness exception hierarchy
"""

from pathlib import Path
from typing import Optional


class E2EError(Exception):
    """E2E harness base exception"""

    pass


class ConfigError(E2EError):
    """Required run configuration is missing or invalid"""

    def __init__(self, missing: list[str], message: Optional[str] = None):
        self.missing = missing
        super().__init__(
            message or f"Missing required environment variables: {', '.join(missing)}"
        )


class DiscoveryError(E2EError):
    """Implementation directory does not match the expected layout"""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ScenarioError(E2EError):
    """Scenario-scoped error"""

    pass


class StartError(ScenarioError):
    """Process could not be started or exited during startup"""

    def __init__(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        output: str = "",
    ):
        self.name = name
        self.exit_code = exit_code
        self.output = output
        message = f"Failed to start {name}: {reason}"
        if exit_code is not None:
            message += f" (exit code {exit_code})"
        super().__init__(message)


class HealthCheckTimeout(ScenarioError):
    """Server never reported healthy"""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Server failed to become healthy after {attempts} attempts"
        )


class CallError(ScenarioError):
    """Client invocation failed"""

    pass


class CleanupError(E2EError):
    """Stopping a process failed"""

    pass
