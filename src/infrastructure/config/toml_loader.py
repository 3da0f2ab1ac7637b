"""TOML configuration loader with env overrides."""

import logging
import os
import tomllib
from pathlib import Path

from src.domain.ports.config import (
    AgentConfig,
    AppConfig,
    LLMConfig,
    ModelConfig,
    OpenAICompatibleConfig,
    ParserConfig,
    ResilienceConfig,
    SecurityConfig,
    ServerConfig,
    ToolsConfig,
)

logger = logging.getLogger(__name__)

# (env var, section, key) for integer overrides
_INT_OVERRIDES = (
    ("PORT", "server", "port"),
    ("RATE_LIMIT_PER_MINUTE", "security", "rate_limit_requests_per_minute"),
    ("AGENT_MAX_ITERATIONS", "agent", "max_iterations"),
    ("PARSER_MAX_TOOL_CALLS", "parser", "max_tool_calls"),
)


def _load_toml(path: Path) -> dict:
    """Load TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge(base: dict, override: dict) -> dict:
    """Merge override into base, one level deep (sections merge key by key)."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides."""
    if provider := os.getenv("LLM_PROVIDER"):
        config.setdefault("llm", {})["provider"] = provider
    if base_url := os.getenv("OPENAI_BASE_URL"):
        config.setdefault("openai_compatible", {})["base_url"] = base_url
    if api_key := os.getenv("OPENAI_API_KEY"):
        config.setdefault("openai_compatible", {})["api_key"] = api_key.strip()
    if level := os.getenv("LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = level.upper()
    if path := os.getenv("LOG_FILE"):
        config.setdefault("logging", {})["file"] = path.strip()
    if origins := os.getenv("CORS_ORIGINS"):
        config.setdefault("security", {})["cors_origins"] = [o.strip() for o in origins.split(",")]
    if model := os.getenv("AGENT_PRIMARY_MODEL"):
        config.setdefault("models", {})["primary"] = model.strip()
    if model := os.getenv("AGENT_FALLBACK_MODEL"):
        config.setdefault("models", {})["fallback"] = model.strip()
    for env_name, section, key in _INT_OVERRIDES:
        if value := os.getenv(env_name):
            try:
                config.setdefault(section, {})[key] = int(value)
            except ValueError:
                logger.warning("Invalid %s env value: %r, ignoring", env_name, value)
    return config


def load_config(config_dir: Path | None = None) -> AppConfig:
    """Load configuration from TOML files with env overrides.

    Loads default.toml, then development.toml if exists.
    """
    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent.parent.parent / "config"

    config: dict = {}

    default_path = config_dir / "default.toml"
    if default_path.exists():
        config = _load_toml(default_path)

    dev_path = config_dir / "development.toml"
    if dev_path.exists():
        config = _merge(config, _load_toml(dev_path))

    config = _apply_env_overrides(config)

    logging_raw = config.get("logging") or {}
    return AppConfig(
        server=ServerConfig(**(config.get("server") or {})),
        llm=LLMConfig(**(config.get("llm") or {})),
        openai_compatible=OpenAICompatibleConfig(**(config.get("openai_compatible") or {})),
        models=ModelConfig(**(config.get("models") or {})),
        parser=ParserConfig(**(config.get("parser") or {})),
        agent=AgentConfig(**(config.get("agent") or {})),
        tools=ToolsConfig(**(config.get("tools") or {})),
        resilience=ResilienceConfig(**(config.get("resilience") or {})),
        security=SecurityConfig(**(config.get("security") or {})),
        log_level=logging_raw.get("level", "INFO"),
        log_file=(logging_raw.get("file") or "").strip(),
        log_rotation_max_mb=int(logging_raw.get("log_rotation_max_mb", 5)),
        log_rotation_backups=int(logging_raw.get("log_rotation_backups", 3)),
    )
