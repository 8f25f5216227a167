"""Project configuration model for the trace forwarder.

Captures mibo.yaml fields with sensible defaults: which identifiers to
attach, PII scrubbing, operator metadata, delivery options, and the
collector credentials.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, ValidationError

from mibo.errors import ConfigurationError
from mibo.models.trace import FailureStrategy
from mibo.tracing.redaction import DEFAULT_PII_KEYS, parse_pii_keys

DEFAULT_SERVER_URL = "https://api.mibo-ai.com"
DEFAULT_TIMEOUT_SECONDS = 30

CONFIG_FILENAME = "mibo.yaml"

# Environment variables that override the credentials block.
API_KEY_ENV = "MIBO_API_KEY"
SERVER_URL_ENV = "MIBO_SERVER_URL"


class MetadataFields(BaseModel):
    """Operator-supplied metadata merged into the trace.

    ``additional_fields`` is usually a JSON object encoded as a string
    (as typed into a config file or CLI flag); an already-parsed mapping
    is accepted too. It is parsed when the trace is built.
    """

    model_config = {"extra": "forbid"}

    environment: str = "production"
    version: str = "1.0.0"
    additional_fields: str | dict[str, Any] = "{}"


class DeliveryOptions(BaseModel):
    """Per-run delivery overrides. A timeout of 0 means the default."""

    model_config = {"extra": "forbid"}

    server_url: str = ""
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, ge=0)


class Credentials(BaseModel):
    """Collector credentials. The API key is kept as a SecretStr."""

    model_config = {"extra": "forbid"}

    api_key: SecretStr = SecretStr("")
    server_url: str = DEFAULT_SERVER_URL


class ProjectConfig(BaseModel):
    """Project-level configuration loaded from mibo.yaml."""

    model_config = {"extra": "forbid"}

    platform_id: str = ""
    external_id: str = ""
    clean_pii: bool = False
    pii_keys: str = DEFAULT_PII_KEYS
    include_metadata: bool = False
    metadata: MetadataFields = Field(default_factory=MetadataFields)
    options: DeliveryOptions = Field(default_factory=DeliveryOptions)
    continue_on_fail: bool = False
    sender: str = "http"
    credentials: Credentials = Field(default_factory=Credentials)

    @property
    def blocked_keys(self) -> frozenset[str]:
        """Keys to redact; empty when PII cleaning is disabled."""
        if not self.clean_pii:
            return frozenset()
        return parse_pii_keys(self.pii_keys)

    @property
    def failure_strategy(self) -> FailureStrategy:
        if self.continue_on_fail:
            return FailureStrategy.ANNOTATE_AND_CONTINUE
        return FailureStrategy.FAIL_FAST

    @property
    def operator_metadata(self) -> MetadataFields | None:
        """Metadata fields to merge, or None when metadata is not included."""
        return self.metadata if self.include_metadata else None

    def resolve_server_url(self) -> str:
        """Pick the server URL: options override, then credentials, then default.

        Trailing slashes are stripped so paths can be appended directly.
        """
        url = self.options.server_url or self.credentials.server_url or DEFAULT_SERVER_URL
        return url.rstrip("/")

    def timeout_ms(self) -> int:
        """Delivery timeout in milliseconds; 0 falls back to the default."""
        seconds = self.options.timeout or DEFAULT_TIMEOUT_SECONDS
        return int(round(seconds * 1000))

    def require_api_key(self) -> str:
        """Return the API key, raising ConfigurationError if it is missing."""
        key = self.credentials.api_key.get_secret_value()
        if not key:
            raise ConfigurationError(
                f"No API key configured. Set {API_KEY_ENV} or add "
                f"credentials.api_key to {CONFIG_FILENAME}."
            )
        return key


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for mibo.yaml.

    Args:
        start: Starting path (file or directory). Defaults to cwd.

    Returns:
        Path to the directory containing mibo.yaml, or cwd if none found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists():
            return current
        current = current.parent
    return Path.cwd()


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def apply_env_overrides(config: ProjectConfig, environ: dict[str, str] | None = None) -> ProjectConfig:
    """Return a copy of config with credentials taken from the environment."""
    env = os.environ if environ is None else environ
    updates: dict[str, Any] = {}
    if env.get(API_KEY_ENV):
        updates["api_key"] = SecretStr(env[API_KEY_ENV])
    if env.get(SERVER_URL_ENV):
        updates["server_url"] = env[SERVER_URL_ENV]
    if not updates:
        return config
    credentials = config.credentials.model_copy(update=updates)
    return config.model_copy(update={"credentials": credentials})


def load_project_config(
    project_root: Path | None = None,
    environ: dict[str, str] | None = None,
) -> ProjectConfig:
    """Load ProjectConfig from mibo.yaml. Returns defaults if not found.

    Environment credentials (MIBO_API_KEY, MIBO_SERVER_URL) are applied
    on top of whatever the file contains.

    Args:
        project_root: Directory holding mibo.yaml. If None, uses
            find_project_root() to locate it.
        environ: Environment mapping to read overrides from (defaults
            to os.environ).

    Returns:
        Validated ProjectConfig instance.

    Raises:
        ConfigurationError: If the file is not valid YAML or fails
            schema validation.
    """
    if project_root is None:
        project_root = find_project_root()
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return apply_env_overrides(ProjectConfig(), environ)

    import yaml

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    if raw is None:
        return apply_env_overrides(ProjectConfig(), environ)
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")

    try:
        config = ProjectConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {_format_validation_error(exc)}"
        ) from exc
    return apply_env_overrides(config, environ)
