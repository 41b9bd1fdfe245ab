"""
Configuration for the agent runtime.

``RelayConfig`` is an immutable settings value built once at startup and
passed explicitly into the Runner, ProviderAdapter, GuardrailPipeline and
ToolInvoker constructors. Reconfiguring means building a new value.

Configuration precedence (highest to lowest):
1. Keyword arguments passed to load_config() / RelayConfig()
2. Environment variables (AGENTRELAY_* prefix, ``__`` for nested groups)
3. .env file
4. pyproject.toml [tool.agentrelay] section
5. Hardcoded defaults
"""

import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Import tomllib for Python 3.11+, tomli for Python 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..exceptions import ConfigurationError
from ..models.enums import ErrorKind, LogLevel, TRANSIENT_KINDS, Verdict

logger = logging.getLogger(__name__)


def load_pyproject_defaults(path: Path | None = None) -> dict[str, Any]:
    """
    Load defaults from the [tool.agentrelay] section in pyproject.toml.

    Returns:
        Dictionary of configuration overrides, empty when absent or unreadable
    """
    pyproject_path = path or Path("pyproject.toml")

    if not pyproject_path.exists():
        return {}

    try:
        with pyproject_path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Could not load pyproject.toml: {e}")
        return {}

    tool_config = data.get("tool", {}).get("agentrelay", {})
    if tool_config:
        logger.debug(f"Loaded {len(tool_config)} settings from pyproject.toml")
    return tool_config


class PyProjectTomlSettingsSource(PydanticBaseSettingsSource):
    """pydantic-settings source reading [tool.agentrelay] from pyproject.toml."""

    def get_field_value(self, field_name: str, field_info: Any) -> tuple[Any, str, bool]:
        """Not used in this implementation."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        return load_pyproject_defaults()


class RetryPolicy(BaseModel):
    """Exponential backoff with jitter for transient provider failures."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, le=20, description="Retries after the first attempt")
    base_delay: float = Field(default=1.0, gt=0, description="Initial backoff delay in seconds")
    max_delay: float = Field(default=60.0, gt=0, description="Upper bound for a single delay")
    multiplier: float = Field(default=2.0, ge=1.0, description="Backoff growth factor")
    jitter: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Random jitter as a fraction of the delay"
    )
    retryable_kinds: frozenset[ErrorKind] = Field(
        default=TRANSIENT_KINDS, description="Error kinds eligible for retry"
    )

    @field_validator("retryable_kinds")
    @classmethod
    def validate_retryable_kinds(cls, v: frozenset[ErrorKind]) -> frozenset[ErrorKind]:
        """Only transient kinds may be retried; auth and validation never are"""
        invalid = sorted(kind.value for kind in v - TRANSIENT_KINDS)
        if invalid:
            raise ValueError(f"Non-transient error kinds cannot be retried: {invalid}")
        return v

    @model_validator(mode="after")
    def validate_delays(self) -> "RetryPolicy":
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )
        return self

    def is_retryable(self, kind: ErrorKind) -> bool:
        return kind in self.retryable_kinds


class CircuitBreakerSettings(BaseModel):
    """Thresholds for the Closed -> Open -> HalfOpen breaker."""

    model_config = ConfigDict(frozen=True)

    failure_threshold: int = Field(default=5, ge=1, description="Failures in window that open the breaker")
    window_seconds: float = Field(default=60.0, gt=0, description="Sliding failure-counting window")
    cooldown_seconds: float = Field(default=30.0, gt=0, description="Open duration before half-open")
    half_open_max_calls: int = Field(default=1, ge=1, description="Trial calls allowed while half-open")


class RelayConfig(BaseSettings):
    """
    Runtime configuration.

    Frozen after construction; use ``model_copy(update=...)`` or
    load_config(**overrides) to derive a variant.
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTRELAY_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Provider resilience
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    provider_timeout: float = Field(default=60.0, gt=0, description="Deadline per model call (seconds)")

    # Turn loop
    default_max_turns: int = Field(default=10, ge=1, description="max_turns for agents that omit it")
    max_handoffs: int = Field(default=5, ge=0, description="Agent switches allowed in one run")

    # Tools
    tool_timeout: float = Field(default=30.0, gt=0, description="Deadline per tool call (seconds)")
    max_tool_concurrency: int = Field(default=8, ge=1, description="Parallel tool calls per turn")

    # Guardrails
    guardrail_timeout: float = Field(default=10.0, gt=0, description="Deadline per guardrail (seconds)")
    guardrail_failure_verdict: Verdict = Field(
        default=Verdict.FLAG, description="Verdict recorded when a guardrail raises or times out"
    )

    # Logging
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Path | None = Field(default=None, description="Rotating JSON log file, None to disable")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, description="Maximum log file size before rotation")
    log_backup_count: int = Field(default=5, description="Number of backup log files to keep")
    enable_rich_console: bool = Field(default=True, description="Rich tracebacks and summary tables")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            PyProjectTomlSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("guardrail_failure_verdict")
    @classmethod
    def validate_failure_verdict(cls, v: Verdict) -> Verdict:
        """A failing guardrail must leave a record, so ALLOW is not accepted"""
        if v == Verdict.ALLOW:
            raise ValueError("guardrail_failure_verdict cannot be 'allow'; failures must be recorded")
        if v == Verdict.REDACT:
            raise ValueError("guardrail_failure_verdict cannot be 'redact'; a failed guardrail has no redaction")
        return v

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "RelayConfig":
        if self.guardrail_timeout > self.provider_timeout:
            logger.warning(
                f"guardrail_timeout ({self.guardrail_timeout}s) exceeds "
                f"provider_timeout ({self.provider_timeout}s); guardrails may dominate latency."
            )
        return self

    def ensure_log_directory(self) -> None:
        if self.log_file and self.log_file.parent:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)


def load_config(**overrides: Any) -> RelayConfig:
    """
    Build a configuration value from all sources.

    Raises:
        ConfigurationError: If any setting fails validation
    """
    from pydantic import ValidationError

    try:
        return RelayConfig(**overrides)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(first.get("msg", str(e)), field=field, value=first.get("input")) from e
