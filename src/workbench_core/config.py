"""Configuration loading with environment variable substitution."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class ProjectConfig(BaseModel):
    """Project seeding settings."""

    name: str = "workbench-project"
    seed: str = "starter"  # starter | empty
    files: dict[str, str] = Field(default_factory=dict)  # Overrides/extra seed files


class SandboxConfig(BaseModel):
    """Sandbox runtime configuration."""

    backend: str = "local"  # local | mock | <entry point name>
    workdir: str | None = None  # For local backend
    env: dict[str, str] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)  # Backend-specific settings


class CommandConfig(BaseModel):
    """A program and its argv."""

    program: str
    args: list[str] = Field(default_factory=list)

    def display(self) -> str:
        """Render the command the way a shell prompt shows it."""
        return " ".join([self.program, *self.args])


class PipelineConfig(BaseModel):
    """Commands run by the run pipeline, in order."""

    install: CommandConfig = Field(
        default_factory=lambda: CommandConfig(program="npm", args=["install"])
    )
    dev: CommandConfig = Field(
        default_factory=lambda: CommandConfig(program="npm", args=["run", "dev"])
    )


class SyncConfig(BaseModel):
    """Sandbox filesystem sync settings."""

    max_retries: int = Field(default=2, ge=0)
    retry_delay_seconds: float = Field(default=0.2, ge=0)


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "json"  # json | text


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=list)


class Config(BaseModel):
    """Main configuration for workbench-core."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                import json
                data = json.load(f)

        # Substitute environment variables
        data = substitute_env_vars(data or {})
        return cls.model_validate(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data)
        return cls.model_validate(data)
