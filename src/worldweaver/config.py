"""Configuration loading.

Configuration lives in ``worldweaver.yaml``. Every key is optional; a few can
be overridden from the environment (``WW_PROVIDER``, ``WW_MAX_RETRIES``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from worldweaver.errors import ConfigError

DEFAULT_PROVIDER = "ollama/qwen3:8b"
DEFAULT_MAX_RETRIES = 3
DEFAULT_OPTIONS_COUNT = 6
DEFAULT_ENTITY_ATTITUDE = "neutral"
DEFAULT_FALLBACK_OPTIONS = (
    "Look around.",
    "Ponder the situation.",
    "Check inventory.",
    "Try to move on.",
    "Consider your objective.",
    "Plan your next steps.",
)
DEFAULT_PROMOTION_THRESHOLD = 6
DEFAULT_MAX_NODE_DESCRIPTION = 300
DEFAULT_CORRECTION_TEMPERATURE = 0.75

CONFIG_FILENAME = "worldweaver.yaml"


@dataclass
class RetryConfig:
    """Bounds and delays for collaborator retries.

    Attributes:
        max_retries: Extra attempts after the first one.
        delay_ms: Pause between attempts.
        transient_delay_ms: Minimum pause after a transient (network/5xx) failure.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    delay_ms: int = 500
    transient_delay_ms: int = 5000

    @property
    def max_attempts(self) -> int:
        """Total attempts, including the first."""
        return self.max_retries + 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryConfig:
        env_retries = os.getenv("WW_MAX_RETRIES")
        max_retries = data.get("max_retries", DEFAULT_MAX_RETRIES)
        if env_retries:
            try:
                max_retries = int(env_retries)
            except ValueError as e:
                raise ValueError(f"WW_MAX_RETRIES must be an integer, got {env_retries!r}") from e
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        return cls(
            max_retries=max_retries,
            delay_ms=data.get("delay_ms", 500),
            transient_delay_ms=data.get("transient_delay_ms", 5000),
        )


@dataclass
class TurnConfig:
    """Turn parsing defaults."""

    options_count: int = DEFAULT_OPTIONS_COUNT
    default_attitude: str = DEFAULT_ENTITY_ATTITUDE
    fallback_options: list[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_OPTIONS))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TurnConfig:
        return cls(
            options_count=data.get("options_count", DEFAULT_OPTIONS_COUNT),
            default_attitude=data.get("default_attitude", DEFAULT_ENTITY_ATTITUDE),
            fallback_options=list(data.get("fallback_options", DEFAULT_FALLBACK_OPTIONS)),
        )


@dataclass
class GraphConfig:
    """Location graph limits."""

    promotion_threshold: int = DEFAULT_PROMOTION_THRESHOLD
    max_node_description: int = DEFAULT_MAX_NODE_DESCRIPTION

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GraphConfig:
        return cls(
            promotion_threshold=data.get("promotion_threshold", DEFAULT_PROMOTION_THRESHOLD),
            max_node_description=data.get("max_node_description", DEFAULT_MAX_NODE_DESCRIPTION),
        )


@dataclass
class WeaverConfig:
    """Top-level configuration.

    Attributes:
        provider: Provider string such as ``"ollama/qwen3:8b"``.
        retries: Retry bounds shared by the turn loop and corrective calls.
        turn: Turn parsing defaults.
        graph: Location graph limits.
        correction_temperature: Sampling temperature for corrective calls.
    """

    provider: str = DEFAULT_PROVIDER
    retries: RetryConfig = field(default_factory=RetryConfig)
    turn: TurnConfig = field(default_factory=TurnConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    correction_temperature: float = DEFAULT_CORRECTION_TEMPERATURE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WeaverConfig:
        """Create config from a parsed YAML mapping.

        Args:
            data: Mapping with optional ``provider``, ``retries``, ``turn``,
                ``graph`` and ``correction`` sections.

        Returns:
            WeaverConfig instance.
        """
        correction = data.get("correction", {})
        return cls(
            provider=os.getenv("WW_PROVIDER") or data.get("provider", DEFAULT_PROVIDER),
            retries=RetryConfig.from_dict(data.get("retries", {})),
            turn=TurnConfig.from_dict(data.get("turn", {})),
            graph=GraphConfig.from_dict(data.get("graph", {})),
            correction_temperature=correction.get("temperature", DEFAULT_CORRECTION_TEMPERATURE),
        )


def load_config(path: Path | None = None) -> WeaverConfig:
    """Load configuration from a YAML file.

    Args:
        path: Config file or directory containing ``worldweaver.yaml``.
            A missing file yields the defaults (environment overrides still apply).

    Returns:
        WeaverConfig instance.

    Raises:
        ConfigError: If the file cannot be parsed or a value, including an
            environment override, is invalid.
    """
    if path is None:
        return _from_data(Path(CONFIG_FILENAME), {})
    config_path = path / CONFIG_FILENAME if path.is_dir() else path
    if not config_path.exists():
        return _from_data(config_path, {})

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except Exception as e:
        raise ConfigError(config_path, str(e)) from e

    if data is None:
        return _from_data(config_path, {})
    if not isinstance(data, dict):
        raise ConfigError(config_path, "Top-level value must be a mapping")
    return _from_data(config_path, dict(data))


def _from_data(config_path: Path, data: dict[str, Any]) -> WeaverConfig:
    try:
        return WeaverConfig.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ConfigError(config_path, str(e)) from e
