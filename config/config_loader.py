"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from roundtable.errors import ConfigurationError
from roundtable.exit_criteria import ExitCriteriaConfig
from roundtable.modes import Parallelization
from roundtable.rate_limit import DEFAULT_MAX_WAIT_SEC, RateLimiterConfig
from roundtable.retry import RetryPolicy

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

ENV_EXIT_ENABLED = "ROUNDTABLE_EXIT_ENABLED"
ENV_EXIT_THRESHOLD = "ROUNDTABLE_EXIT_CONSENSUS_THRESHOLD"
ENV_EXIT_ROUNDS = "ROUNDTABLE_EXIT_CONVERGENCE_ROUNDS"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    synthesis: str


@dataclass
class DefaultsConfig:
    rounds: int
    max_rounds: int
    output_dir: Path
    synthesizer: str
    mode: str = "collaborative"
    parallelization: str = "none"
    default_panel: list[str] = field(default_factory=list)


@dataclass
class RateLimitSettings:
    max_wait_sec: float = DEFAULT_MAX_WAIT_SEC
    providers: dict[str, RateLimiterConfig] = field(default_factory=dict)


@dataclass
class ConsensusConfig:
    strategy: str = "lexical"
    delegate: str | None = None
    high_threshold: float = 0.7
    medium_threshold: float = 0.4


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    rate_limits: RateLimitSettings = field(default_factory=RateLimitSettings)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    exit_criteria: ExitCriteriaConfig = field(default_factory=ExitCriteriaConfig)
    consensus: ConsensusConfig = field(default_factory=ConsensusConfig)
    available_providers: set[str] = field(default_factory=set)


def _env_bool(name: str, fallback: bool) -> bool:
    value = os.environ.get(name, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    if value:
        logger.warning("Ignoring %s=%r, expected true/false", name, value)
    return fallback


def _env_number(name: str, fallback: float, cast: type, low: float, high: float | None = None) -> float:
    value = os.environ.get(name, "").strip()
    if not value:
        return fallback
    try:
        number = cast(value)
    except ValueError:
        logger.warning("Ignoring %s=%r, not a number", name, value)
        return fallback
    if number < low or (high is not None and number > high):
        logger.warning("Ignoring %s=%r, out of range", name, value)
        return fallback
    return number


def _load_exit_criteria(raw: dict) -> ExitCriteriaConfig:
    """File values first, then ROUNDTABLE_EXIT_* environment overrides."""
    enabled = bool(raw.get("enabled", True))
    threshold = float(raw.get("consensus_threshold", 0.9))
    rounds = int(raw.get("convergence_rounds", 2))
    return ExitCriteriaConfig(
        enabled=_env_bool(ENV_EXIT_ENABLED, enabled),
        consensus_threshold=_env_number(ENV_EXIT_THRESHOLD, threshold, float, 0.0, 1.0),
        convergence_rounds=int(_env_number(ENV_EXIT_ROUNDS, rounds, int, 1)),
    )


def _load_rate_limits(raw: dict) -> RateLimitSettings:
    providers = {
        name: RateLimiterConfig(
            max_tokens=int(cfg["max_tokens"]),
            refill_rate=int(cfg["refill_rate"]),
            refill_interval_sec=float(cfg.get("refill_interval_sec", 1.0)),
        )
        for name, cfg in (raw.get("providers") or {}).items()
    }
    return RateLimitSettings(
        max_wait_sec=float(raw.get("max_wait_sec", DEFAULT_MAX_WAIT_SEC)),
        providers=providers,
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ConfigurationError if a
    value is out of range. Missing API keys are only logged; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        rounds=int(defaults_raw["rounds"]),
        max_rounds=int(defaults_raw["max_rounds"]),
        output_dir=Path(defaults_raw["output_dir"]),
        synthesizer=str(defaults_raw["synthesizer"]),
        mode=str(defaults_raw.get("mode", "collaborative")),
        parallelization=str(defaults_raw.get("parallelization", "none")),
        default_panel=list(defaults_raw.get("default_panel", [])),
    )

    if defaults.parallelization not in {p.value for p in Parallelization}:
        raise ConfigurationError(f"Unknown parallelization: {defaults.parallelization}")

    prompts = PromptsConfig(synthesis=raw["prompts"]["synthesis"])

    consensus_raw = raw.get("consensus") or {}
    try:
        rate_limits = _load_rate_limits(raw.get("rate_limits") or {})
        retry = RetryPolicy(**(raw.get("retry") or {}))
        exit_criteria = _load_exit_criteria(raw.get("exit_criteria") or {})
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid settings in {settings_path}: {exc}") from exc

    consensus = ConsensusConfig(
        strategy=str(consensus_raw.get("strategy", "lexical")),
        delegate=consensus_raw.get("delegate"),
        high_threshold=float(consensus_raw.get("high_threshold", 0.7)),
        medium_threshold=float(consensus_raw.get("medium_threshold", 0.4)),
    )
    if consensus.strategy not in ("lexical", "delegate"):
        raise ConfigurationError(f"Unknown consensus strategy: {consensus.strategy}")

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        rate_limits=rate_limits,
        retry=retry,
        exit_criteria=exit_criteria,
        consensus=consensus,
        available_providers=available_providers,
    )
