"""Configuration loading from YAML."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

AGENT_MODES = ("simulated", "live")


@dataclass
class AgentConfig:
    mode: str = "simulated"  # "simulated" | "live"
    endpoint: str | None = None
    api_key: str | None = None
    api_key_env: str = "KB_VALIDATOR_API_KEY"
    timeout: float | None = None  # seconds; None = httpx default


@dataclass
class SimulationConfig:
    min_delay_ms: float = 1500.0
    max_delay_ms: float = 2500.0
    fixture_path: str | None = None  # None = packaged fixture


@dataclass
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    max_input_length: int = 50_000


@dataclass
class AppConfig:
    agent: AgentConfig = field(default_factory=AgentConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    api: APIConfig = field(default_factory=APIConfig)


# Sections the server can hot-apply without a restart
HOT_SECTIONS = frozenset({"agent", "simulation"})


def _apply_dict(target: Any, data: dict[str, Any]) -> None:
    """Apply dictionary values onto a dataclass instance."""
    for key, value in data.items():
        if not hasattr(target, key):
            logger.debug("Ignoring unknown config key '%s'.", key)
            continue
        current = getattr(target, key)
        if current is not None and value is not None:
            expected_type = type(current)
            actual_type = type(value)
            # Allow int → float coercion
            if expected_type is float and actual_type is int:
                value = float(value)
            # Guard against bool being subclass of int
            elif expected_type in (int, float) and actual_type is bool:
                logger.warning(
                    "Config type mismatch for '%s': expected %s, got %s, skipping.",
                    key, expected_type.__name__, actual_type.__name__,
                )
                continue
            elif not isinstance(value, expected_type):
                logger.warning(
                    "Config type mismatch for '%s': expected %s, got %s, skipping.",
                    key, expected_type.__name__, actual_type.__name__,
                )
                continue
        setattr(target, key, value)


def _validate(cfg: AppConfig) -> None:
    if cfg.agent.mode not in AGENT_MODES:
        logger.warning(
            "Unknown agent mode '%s', falling back to 'simulated'.", cfg.agent.mode
        )
        cfg.agent.mode = "simulated"
    sim = cfg.simulation
    if sim.min_delay_ms < 0 or sim.max_delay_ms < sim.min_delay_ms:
        logger.warning(
            "Invalid simulated delay range [%s, %s), using defaults.",
            sim.min_delay_ms, sim.max_delay_ms,
        )
        defaults = SimulationConfig()
        sim.min_delay_ms = defaults.min_delay_ms
        sim.max_delay_ms = defaults.max_delay_ms


def apply_section(cfg: AppConfig, section: str, data: dict[str, Any]) -> bool:
    """Apply *data* onto the named section.  Returns False for unknown sections."""
    target = getattr(cfg, section, None)
    if target is None or not dataclasses.is_dataclass(target):
        return False
    _apply_dict(target, data)
    _validate(cfg)
    return True


def resolve_api_key(agent: AgentConfig) -> str | None:
    """API key from config, falling back to the configured env var."""
    if agent.api_key:
        return agent.api_key
    return os.environ.get(agent.api_key_env) or None


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from YAML file, falling back to defaults."""
    cfg = AppConfig()

    if config_path is None:
        config_path = Path("config.yaml")

    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        for section in ("agent", "simulation", "api"):
            if isinstance(raw.get(section), dict):
                _apply_dict(getattr(cfg, section), raw[section])
        _validate(cfg)
    else:
        logger.debug("No config file at %s, using defaults.", config_path)

    return cfg


def config_to_dict(cfg: AppConfig) -> dict[str, Any]:
    """Convert an AppConfig to a plain dict, redacting secrets.

    ``agent.api_key`` is replaced with ``"***"`` when set so the key
    never leaks to API clients.
    """
    result = dataclasses.asdict(cfg)
    if result["agent"].get("api_key"):
        result["agent"]["api_key"] = "***"
    return result


def save_config(cfg: AppConfig, config_path: Path | None = None) -> None:
    """Write the current config to YAML on disk.

    The file is overwritten atomically (write-to-temp then rename).
    """
    if config_path is None:
        config_path = Path("config.yaml")

    data = config_to_dict(cfg)
    # Do NOT persist the redacted key; restore it from the live config
    data["agent"]["api_key"] = cfg.agent.api_key

    tmp = config_path.with_suffix(".yaml.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    tmp.replace(config_path)
