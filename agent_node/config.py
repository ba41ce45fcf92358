"""Runtime configuration for the agent node.

Settings come from a JSON file (``config.json``) plus ``AGENT_*`` environment
overrides. The persona lives in a separate ``agent.json`` profile.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from agent_core.backoff import BackoffPolicy
from agent_core.errors import ConfigError
from agent_core.window import DEFAULT_TURN_TEMPLATE, DEFAULT_WINDOW_SIZE

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_PROFILE_PATH = "agent.json"

_ENV_OVERRIDES: Dict[str, str] = {
    "AGENT_RPC_URL": "rpc_url",
    "AGENT_CONTRACT_ADDRESS": "contract_address",
    "AGENT_MNEMONIC": "mnemonic",
    "AGENT_PRIVATE_KEY": "private_key",
    "AGENT_DB_PATH": "db_path",
    "AGENT_MODEL_PATH": "model_path",
    "AGENT_METRICS_PORT": "metrics_port",
}


class GenerationSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    max_tokens: int = Field(512, ge=1)
    temperature: float = Field(0.8, ge=0.0)
    top_p: float = Field(0.95, gt=0.0, le=1.0)


class BackoffSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: Literal["fixed", "exponential"] = "fixed"
    base_seconds: float = Field(1.0, ge=0.0)
    max_seconds: float = Field(30.0, ge=0.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "BackoffSettings":
        if self.max_seconds < self.base_seconds:
            raise ValueError("backoff.max_seconds must be >= backoff.base_seconds")
        return self

    def policy(self) -> BackoffPolicy:
        return BackoffPolicy(kind=self.kind, base_seconds=self.base_seconds, max_seconds=self.max_seconds)


class AgentConfig(BaseModel):
    """Connection, storage and generation settings."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, protected_namespaces=())

    rpc_url: str = Field(..., alias="rpcUrl")
    contract_address: str = Field(..., alias="contractAddress")
    mnemonic: Optional[str] = Field(None, alias="privkeyMnemonic", repr=False)
    private_key: Optional[str] = Field(None, alias="privateKey", repr=False)
    contract_abi_path: Optional[Path] = Field(None, alias="contractAbiPath")
    db_path: Path = Field(Path("./data/agent.db"), alias="dbPath")
    model_path: Path = Field(Path("./models/phi-4-Q5_K_M.gguf"), alias="modelPath")
    n_ctx: int = Field(8192, ge=256)
    n_gpu_layers: int = -1
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    window_size: int = Field(DEFAULT_WINDOW_SIZE, ge=1)
    seed_offset: int = 41
    legacy_index_label: bool = False
    backoff: BackoffSettings = Field(default_factory=BackoffSettings)
    receipt_timeout: float = Field(120.0, gt=0.0)
    sync_writes: bool = True
    metrics_port: Optional[int] = Field(None, ge=1, le=65535)

    @model_validator(mode="after")
    def _require_credentials(self) -> "AgentConfig":
        if not self.mnemonic and not self.private_key:
            raise ValueError("either privkeyMnemonic/mnemonic or privateKey must be set")
        return self


class AgentProfile(BaseModel):
    """Persona replayed as the system preamble of every window."""

    model_config = ConfigDict(extra="ignore")

    name: str = "agent"
    system: str
    turn_template: str = DEFAULT_TURN_TEMPLATE

    @model_validator(mode="after")
    def _check_template(self) -> "AgentProfile":
        if "{index}" not in self.turn_template:
            raise ValueError("turn_template must contain an {index} placeholder")
        return self


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}", detail=str(exc)) from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"Expected a JSON object in {path}")
    return payload


def apply_env_overrides(
    payload: Mapping[str, Any], environ: Mapping[str, str] | None = None
) -> Dict[str, Any]:
    """Return ``payload`` with any ``AGENT_*`` environment values layered on top."""

    env = os.environ if environ is None else environ
    merged = dict(payload)
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is None or value.strip() == "":
            continue
        # Drop the camelCase alias so the override wins validation.
        alias = AgentConfig.model_fields[field_name].alias
        if alias:
            merged.pop(alias, None)
        merged[field_name] = value.strip()
    return merged


def load_config(
    path: os.PathLike[str] | str = DEFAULT_CONFIG_PATH,
    environ: Mapping[str, str] | None = None,
) -> AgentConfig:
    payload = apply_env_overrides(_read_json(Path(path)), environ)
    try:
        return AgentConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}", detail=str(exc)) from exc


def load_profile(path: os.PathLike[str] | str = DEFAULT_PROFILE_PATH) -> AgentProfile:
    payload = _read_json(Path(path))
    try:
        return AgentProfile.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid agent profile in {path}", detail=str(exc)) from exc


__all__ = [
    "AgentConfig",
    "AgentProfile",
    "BackoffSettings",
    "GenerationSettings",
    "apply_env_overrides",
    "load_config",
    "load_profile",
]
