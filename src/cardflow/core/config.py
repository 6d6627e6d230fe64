# src/cardflow/core/config.py
"""Worker settings: pydantic models loaded through Dynaconf.

Every model is frozen and rejects unknown keys, so a typo in a settings
file fails at load time instead of silently falling back to a default.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from cardflow.contracts.engine import RetryPolicy


class RetrySettings(BaseModel):
    """Retry behavior for a batch processor pass.

    Example YAML:
        retry:
          max_retries: 3
          retry_delay_seconds: 1.0
          timeout_seconds: 5.0
    """

    model_config = {"frozen": True, "extra": "forbid"}

    max_retries: int = Field(default=3, ge=0, description="Additional attempts after the first")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Delay between attempts")
    timeout_seconds: float | None = Field(default=5.0, gt=0, description="Per-attempt timeout (null for none)")

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy.from_settings(self)


class ConcurrencySettings(BaseModel):
    """Per-phase concurrency configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_concurrency: int | None = Field(
        default=None,
        gt=0,
        description="Maximum cards in flight per phase (null = whole batch at once)",
    )


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False


class CardflowSettings(BaseModel):
    """Top-level cardflow worker configuration.

    Example YAML:
        worker_type: translator-worker
        retry:
          max_retries: 3
          retry_delay_seconds: 1.0
          timeout_seconds: 10.0
        phase_retry:
          load:
            max_retries: 0
            timeout_seconds: 30.0
        concurrency:
          max_concurrency: 16
    """

    model_config = {"frozen": True, "extra": "forbid"}

    worker_type: str = Field(default="worker", min_length=1, description="Worker name used in logs and events")
    retry: RetrySettings = Field(default_factory=RetrySettings, description="Default retry policy for card phases")
    phase_retry: dict[str, RetrySettings] = Field(default_factory=dict, description="Per-phase retry overrides")
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="after")
    def validate_phase_names(self) -> "CardflowSettings":
        blank = [name for name in self.phase_retry if not name.strip()]
        if blank:
            raise ValueError("phase_retry keys must be non-empty phase names")
        return self

    def retry_policy_for(self, phase: str) -> RetryPolicy:
        """Retry policy for a phase, falling back to the default."""
        if phase in self.phase_retry:
            return self.phase_retry[phase].to_policy()
        return self.retry.to_policy()


# ${VAR} or ${VAR:-default}
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Z_][A-Z0-9_]*)(?::-(?P<default>[^}]*))?\}")

# Keys Dynaconf reports about itself rather than about the file
_DYNACONF_KEYS = frozenset({"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"})


def _substitute_env(text: str) -> str:
    """Replace ``${VAR}`` references; unresolvable ones are left for validation to reject."""

    def lookup(match: re.Match[str]) -> str:
        value = os.environ.get(match["name"], match["default"])
        return match[0] if value is None else value

    return _ENV_REFERENCE.sub(lookup, text)


def _normalize(value: Any) -> Any:
    """Walk a Dynaconf dump: lowercase mapping keys and expand env references."""
    match value:
        case dict():
            return {str(k).lower(): _normalize(v) for k, v in value.items()}
        case list():
            return [_normalize(item) for item in value]
        case str():
            return _substitute_env(value)
        case _:
            return value


def load_settings(config_path: Path) -> CardflowSettings:
    """Load a worker's settings file.

    Sources, highest priority first:
    1. CARDFLOW_* environment variables, ``__`` separating nesting
       (CARDFLOW_RETRY__MAX_RETRIES=5)
    2. The YAML file, with ${VAR} / ${VAR:-default} expanded
    3. Model defaults

    Raises:
        FileNotFoundError: If config_path doesn't exist
        ValidationError: If the merged settings are invalid
    """
    from dynaconf import Dynaconf

    # Dynaconf silently ignores missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    loaded = Dynaconf(
        envvar_prefix="CARDFLOW",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )
    raw = {key: value for key, value in loaded.as_dict().items() if key not in _DYNACONF_KEYS}
    return CardflowSettings(**_normalize(raw))


def resolve_config(settings: CardflowSettings) -> dict[str, Any]:
    """JSON-safe dump of every setting, explicit and defaulted."""
    return settings.model_dump(mode="json")
