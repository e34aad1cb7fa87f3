"""Configuration schema using Pydantic."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

DEFAULT_BINARY_NAME = "transformator"
DEFAULT_READY_MARKER = "server bound"


class ClientOptions(BaseModel):
    """Per-call socket behaviour."""
    connect_timeout_seconds: float | None = Field(default=10.0, gt=0)
    response_timeout_seconds: float | None = Field(default=None, gt=0)  # None waits for the service indefinitely


class StandaloneOptions(BaseModel):
    """Options for launching a private transformator server."""
    binary_path: str | None = None  # None searches PATH for binary_name
    binary_name: str = DEFAULT_BINARY_NAME
    connect_target: str | None = None  # None creates a socket in a fresh temporary directory
    ready_timeout_seconds: float = Field(default=10.0, gt=0)
    kill_grace_seconds: float = Field(default=10.0, ge=0)
    ready_marker: str = DEFAULT_READY_MARKER


class Config(BaseSettings):
    """Root configuration for transformator_client."""
    connect: str | None = None  # default connect string used by the CLI
    client: ClientOptions = Field(default_factory=ClientOptions)
    standalone: StandaloneOptions = Field(default_factory=StandaloneOptions)

    model_config = ConfigDict(
        env_prefix="TRANSFORMATOR_",
        env_nested_delimiter="__",
    )
