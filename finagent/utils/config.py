"""
Settings for the model connection and agent defaults.

Values are resolved in this order, later sources winning:

    1. defaults below
    2. ``config.yaml`` at the project root (``openai:`` / ``azure:`` / ``agents:`` sections)
    3. environment variables (a ``.env`` file in the project root is loaded first)

Example config.yaml
-------------------
    provider: openai
    openai:
      model: gpt-4.1-mini
      temperature: 0.3
    azure:
      endpoint: https://my-resource.openai.azure.com/
      deployment: gpt-4o-mini
      api_version: 2024-10-21
    agents:
      max_tool_iterations: 8
      request_timeout: 60
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from finagent.core.errors import ConfigurationError
from finagent.core.protocol import DEFAULT_MAX_TOOL_ITERATIONS

# Resolve config.yaml from project root
_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config.yaml"

# environment variable -> settings field
_ENV_OVERRIDES = {
    "FINAGENT_PROVIDER": "provider",
    "OPENAI_MODEL": "model",
    "OPENAI_TEMPERATURE": "temperature",
    "OPENAI_API_KEY": "openai_api_key",
    "AZURE_OPENAI_ENDPOINT": "azure_endpoint",
    "AZURE_OPENAI_DEPLOYMENT": "azure_deployment",
    "AZURE_OPENAI_API_VERSION": "azure_api_version",
    "AZURE_OPENAI_API_KEY": "azure_api_key",
    "FINAGENT_MAX_TOOL_ITERATIONS": "max_tool_iterations",
    "FINAGENT_REQUEST_TIMEOUT": "request_timeout",
}


class Settings(BaseModel):
    """Resolved runtime settings. Built once at process start."""

    provider: Literal["openai", "azure"] = "openai"
    model: str = "gpt-4.1-mini"
    temperature: float = 0.3
    request_timeout: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    max_tool_iterations: int = Field(default=DEFAULT_MAX_TOOL_ITERATIONS, ge=1)

    openai_api_key: Optional[str] = None

    azure_endpoint: Optional[str] = None
    azure_deployment: Optional[str] = None
    azure_api_version: str = "2024-10-21"
    azure_api_key: Optional[str] = None

    def require_credentials(self) -> None:
        """Raise ConfigurationError if the selected provider cannot be reached."""
        if self.provider == "azure":
            missing = [
                env for env, value in (
                    ("AZURE_OPENAI_ENDPOINT", self.azure_endpoint),
                    ("AZURE_OPENAI_DEPLOYMENT", self.azure_deployment),
                    ("AZURE_OPENAI_API_KEY", self.azure_api_key),
                )
                if not value
            ]
        else:
            missing = [] if self.openai_api_key else ["OPENAI_API_KEY"]
        if missing:
            raise ConfigurationError(
                f"{', '.join(missing)} not set. "
                "Add it to your environment or to a .env file in the project root."
            )


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def _flatten(config: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if "provider" in config:
        values["provider"] = config["provider"]
    openai_cfg = config.get("openai") or {}
    for key in ("model", "temperature", "max_retries"):
        if key in openai_cfg:
            values[key] = openai_cfg[key]
    azure_cfg = config.get("azure") or {}
    for key in ("endpoint", "deployment", "api_version"):
        if key in azure_cfg:
            values[f"azure_{key}"] = azure_cfg[key]
    agents_cfg = config.get("agents") or {}
    for key in ("max_tool_iterations", "request_timeout"):
        if key in agents_cfg:
            values[key] = agents_cfg[key]
    return values


def load_settings(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Build :class:`Settings` from defaults, config.yaml and the environment.

    Parameters
    ----------
    config_path : Path, optional
        Alternate config file (default: ``config.yaml`` at the project root).
    env : mapping, optional
        Environment to read instead of ``os.environ``; ``.env`` is not loaded
        when given.

    Raises
    ------
    ConfigurationError
        If the file cannot be parsed or a value is invalid.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    values = _flatten(_load_yaml(config_path or _CONFIG_PATH))
    for variable, field in _ENV_OVERRIDES.items():
        value = env.get(variable, "").strip()
        if value:
            values[field] = value

    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc
