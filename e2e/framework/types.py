"""
Type definitions for the e2e harness

Manifest and result models are parsed from JSON produced by implementations
under test, so they accept the camelCase names used on the wire.
"""

import json
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

DEFAULT_SERVER_PORT = 4021
DEFAULT_ENDPOINT_PATH = "/protected"
DEFAULT_HEALTH_PATH = "/health"
DEFAULT_LAUNCH_COMMAND = ("bash", "run.sh")
DEFAULT_NETWORKS = ("base-sepolia", "base")

ImplementationKind = Literal["server", "client"]


class ManifestEndpoint(BaseModel):
    """Protected route declared by a server manifest"""

    path: str
    method: str = "GET"
    description: str = ""
    expected_status: int = Field(200, alias="expectedStatus")
    price: Optional[str] = None

    class Config:
        populate_by_name = True


class ImplementationManifest(BaseModel):
    """Contents of an implementation's test.config.json"""

    name: Optional[str] = None
    type: ImplementationKind
    language: Union[str, list[str]]
    command: Optional[list[str]] = None
    networks: list[str] = Field(default_factory=lambda: list(DEFAULT_NETWORKS))
    health_path: str = Field(DEFAULT_HEALTH_PATH, alias="healthPath")
    endpoints: list[ManifestEndpoint] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("language")
    @classmethod
    def _language_not_empty(cls, value):
        if not value:
            raise ValueError("language must not be empty")
        return value

    @field_validator("command")
    @classmethod
    def _command_not_empty(cls, value):
        if value is not None and not value:
            raise ValueError("command must not be empty")
        return value

    @property
    def languages(self) -> frozenset[str]:
        if isinstance(self.language, str):
            return frozenset([self.language])
        return frozenset(self.language)


class ClientResult(BaseModel):
    """JSON object printed on the last stdout line of a client run"""

    success: bool
    data: Optional[Any] = None
    status_code: Optional[int] = None
    payment_response: Optional[Any] = None
    error: Optional[str] = None

    class Config:
        extra = "allow"

    @field_validator("error", mode="before")
    @classmethod
    def _error_to_text(cls, value):
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, default=str)


class ScenarioResult(BaseModel):
    """Outcome of one scenario run"""

    success: bool
    data: Optional[Any] = None
    status_code: Optional[int] = None
    payment_response: Optional[Any] = None
    error: Optional[str] = None

    class Config:
        frozen = True


@dataclass(frozen=True)
class ServerConfig:
    """Configuration injected into a server process"""

    port: int
    use_cdp_facilitator: bool
    pay_to: str
    network: str
    host: str = "localhost"

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def to_env(self) -> dict[str, str]:
        return {
            "PORT": str(self.port),
            "USE_CDP_FACILITATOR": "true" if self.use_cdp_facilitator else "false",
            "NETWORK": self.network,
            "ADDRESS": self.pay_to,
        }


@dataclass(frozen=True)
class ClientConfig:
    """Configuration injected into a client process"""

    private_key: str
    server_url: str
    endpoint_path: str = DEFAULT_ENDPOINT_PATH

    def to_env(self) -> dict[str, str]:
        return {
            "PRIVATE_KEY": self.private_key,
            "RESOURCE_SERVER_URL": self.server_url,
            "ENDPOINT_PATH": self.endpoint_path,
        }
