"""Configuration loader.

Settings come from ~/.ssfu/config.json, then environment variables (usually
loaded from a .env file) override them.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .llm import DEFAULT_GEMINI_MODEL, DEFAULT_GROQ_MODEL
from .sync.detector import DetectorConfig
from .sync.synchronizer import DedupPolicy, SyncConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".ssfu" / "config.json"
LLM_PROVIDERS = ("groq", "gemini")


@dataclass
class SsfuConfig:
    """Configuration for the journal.

    Attributes:
        db_path: SQLite database with signals and history (~/.ssfu/journal.db).
        log_dir: Directory for the JSONL event log (~/.ssfu/logs).
        llm_provider: 'groq' or 'gemini'.
        model: Model name, provider default if None.
        generator_timeout: Seconds to wait for a generated solution.
        sync: Debounce delay and duplicate policy.
        detector: Keyword lists, marker and categories.
    """

    db_path: Path | None = None
    log_dir: Path | None = None
    llm_provider: str = "groq"
    model: str | None = None
    generator_timeout: float = 30.0
    sync: SyncConfig = field(default_factory=SyncConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.db_path is None:
            self.db_path = Path.home() / ".ssfu" / "journal.db"

        if self.log_dir is None:
            self.log_dir = Path.home() / ".ssfu" / "logs"

        self.llm_provider = self.llm_provider.lower()
        if self.llm_provider not in LLM_PROVIDERS:
            raise ValueError(f"llm_provider must be one of {LLM_PROVIDERS}")

        if self.model is None:
            self.model = DEFAULT_GEMINI_MODEL if self.llm_provider == "gemini" else DEFAULT_GROQ_MODEL

        if self.generator_timeout <= 0:
            raise ValueError("generator_timeout must be positive")

    @property
    def api_key(self) -> str | None:
        """API key of the configured provider, from the environment."""
        if self.llm_provider == "gemini":
            return os.getenv("GEMINI_API_KEY")
        return os.getenv("GROQ_API_KEY")


def load_config(config_path: Path | None = None) -> SsfuConfig:
    """Load SsfuConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "db_path": "~/.ssfu/journal.db",
      "llm": {"provider": "groq", "model": "llama-3.1-70b-versatile", "timeout": 30},
      "sync": {"delay_seconds": 2.0, "dedup": "once_per_pair"},
      "detector": {
        "contraction_keywords": ["miedo", "tensión"],
        "expansion_keywords": ["calma", "claridad"],
        "marker": "resonancia"
      }
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        SsfuConfig instance with loaded values.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return SsfuConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return SsfuConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return SsfuConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return SsfuConfig()

    return _parse_config(data)


def _parse_config(data: dict[str, Any]) -> SsfuConfig:
    """Parse config dictionary into SsfuConfig."""
    llm_data = data.get("llm", {})
    if not isinstance(llm_data, dict):
        llm_data = {}

    sync_data = data.get("sync", {})
    if not isinstance(sync_data, dict):
        sync_data = {}

    detector_data = data.get("detector", {})
    if not isinstance(detector_data, dict):
        detector_data = {}

    detector_kwargs: dict[str, Any] = {}
    for key in ("contraction_keywords", "expansion_keywords", "categories"):
        value = detector_data.get(key)
        if isinstance(value, list) and value:
            detector_kwargs[key] = tuple(str(v) for v in value)
    if isinstance(detector_data.get("marker"), str):
        detector_kwargs["marker"] = detector_data["marker"]

    db_path = data.get("db_path")
    log_dir = data.get("log_dir")

    return SsfuConfig(
        db_path=Path(db_path).expanduser() if db_path else None,
        log_dir=Path(log_dir).expanduser() if log_dir else None,
        llm_provider=str(llm_data.get("provider", "groq")),
        model=llm_data.get("model"),
        generator_timeout=float(llm_data.get("timeout", 30.0)),
        sync=SyncConfig(
            delay_seconds=float(sync_data.get("delay_seconds", 2.0)),
            dedup=DedupPolicy(sync_data.get("dedup", DedupPolicy.ONCE_PER_PAIR.value)),
        ),
        detector=DetectorConfig(**detector_kwargs),
    )


def apply_env(config: SsfuConfig) -> SsfuConfig:
    """Override config values with environment variables.

    Reads SSFU_DB_PATH, SSFU_LOG_DIR, SSFU_LLM_PROVIDER, GROQ_MODEL or
    GEMINI_MODEL, SSFU_GENERATOR_TIMEOUT, SSFU_SYNC_DELAY and SSFU_DEDUP.
    """
    if os.getenv("SSFU_DB_PATH"):
        config.db_path = Path(os.environ["SSFU_DB_PATH"]).expanduser()
    if os.getenv("SSFU_LOG_DIR"):
        config.log_dir = Path(os.environ["SSFU_LOG_DIR"]).expanduser()

    provider = os.getenv("SSFU_LLM_PROVIDER")
    if provider and provider.lower() != config.llm_provider:
        # Switching provider also resets the model to that provider's default
        config = SsfuConfig(
            db_path=config.db_path,
            log_dir=config.log_dir,
            llm_provider=provider,
            generator_timeout=config.generator_timeout,
            sync=config.sync,
            detector=config.detector,
        )

    model_var = "GEMINI_MODEL" if config.llm_provider == "gemini" else "GROQ_MODEL"
    if os.getenv(model_var):
        config.model = os.environ[model_var]

    if os.getenv("SSFU_GENERATOR_TIMEOUT"):
        config.generator_timeout = float(os.environ["SSFU_GENERATOR_TIMEOUT"])
    if os.getenv("SSFU_SYNC_DELAY"):
        config.sync = SyncConfig(
            delay_seconds=float(os.environ["SSFU_SYNC_DELAY"]),
            dedup=config.sync.dedup,
        )
    if os.getenv("SSFU_DEDUP"):
        config.sync = SyncConfig(
            delay_seconds=config.sync.delay_seconds,
            dedup=DedupPolicy(os.environ["SSFU_DEDUP"].lower()),
        )

    return config


def save_config(config: SsfuConfig, config_path: Path | None = None) -> None:
    """Save SsfuConfig to a JSON file.

    Args:
        config: The config to save.
        config_path: Path to write to. Uses DEFAULT_CONFIG_PATH if None.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {
        "db_path": str(config.db_path),
        "log_dir": str(config.log_dir),
        "llm": {
            "provider": config.llm_provider,
            "model": config.model,
            "timeout": config.generator_timeout,
        },
        "sync": {
            "delay_seconds": config.sync.delay_seconds,
            "dedup": config.sync.dedup.value,
        },
        "detector": {
            "contraction_keywords": list(config.detector.contraction_keywords),
            "expansion_keywords": list(config.detector.expansion_keywords),
            "marker": config.detector.marker,
            "categories": [c.value for c in config.detector.categories],
        },
    }

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise
