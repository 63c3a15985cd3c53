"""Prepper-backed configuration loader for Slipstream."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .engine import BrowserOptions
from .errors import TranslationProviderConfigurationError
from .session import DEFAULT_TRANSLATE_URL, SessionTimeouts
from .splitter import DEFAULT_MAX_CHUNK_BYTES

APP_NAME = "Slipstream"


class SlipstreamConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    SLIPSTREAM_PROVIDER: Literal["browser", "echo"] = Field(
        default="browser",
        description="Translation provider selection.",
    )
    SLIPSTREAM_MAX_CHUNK_BYTES: int = Field(
        default=DEFAULT_MAX_CHUNK_BYTES,
        description="Largest chunk, in bytes, sent to the translation surface.",
    )
    SLIPSTREAM_TEMP_DIR: str = Field(default="temp")
    SLIPSTREAM_DEBUG: bool = Field(
        default=False,
        description="Show the browser and save screenshots of every step.",
    )
    SLIPSTREAM_SCREENSHOT_DIR: str = Field(default="debug-screenshots")
    SLIPSTREAM_HEADLESS: bool = Field(default=True)
    SLIPSTREAM_TRANSLATE_URL: str = Field(default=DEFAULT_TRANSLATE_URL)
    SLIPSTREAM_BROWSER_LOCALE: str = Field(default="es-ES")
    SLIPSTREAM_TIMEZONE: str = Field(default="America/Mexico_City")
    SLIPSTREAM_NAVIGATION_TIMEOUT: float = Field(default=60.0)
    SLIPSTREAM_UPLOAD_SETTLE: float = Field(default=3.0)
    SLIPSTREAM_TRIGGER_TIMEOUT: float = Field(default=12.0)
    SLIPSTREAM_COMPLETION_TIMEOUT: float = Field(default=300.0)
    SLIPSTREAM_DOWNLOAD_TIMEOUT: float = Field(default=60.0)
    SLIPSTREAM_POLL_INTERVAL: float = Field(default=1.0)
    SLIPSTREAM_MAX_RETRIES: int = Field(default=1)
    SLIPSTREAM_LOG_LEVEL: str = Field(default="INFO")
    SLIPSTREAM_LOG_JSON: bool = Field(
        default=False,
        description="Emit log records as JSON lines instead of plain text.",
    )

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("SLIPSTREAM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower()
                synonyms = {
                    "google": "browser",
                    "web": "browser",
                    "mock": "echo",
                    "noop": "echo",
                }
                data["SLIPSTREAM_PROVIDER"] = synonyms.get(normalized, normalized)
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=SlipstreamConfig,
        )

        model = validate_settings(combined, provenance=provenance)

        instance = ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=SlipstreamConfig,
        )
        return instance
    except IoError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None:
                continue
            if key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def validate_settings(
    data: Mapping[str, Any],
    *,
    provenance: ProvenanceRecorder | None = None,
) -> SlipstreamConfig:
    """Validate raw setting values against the schema and the runtime bounds."""

    if provenance is None:
        provenance = ProvenanceRecorder()
    try:
        model = SlipstreamConfig.validate(dict(data), provenance=provenance)
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise TranslationProviderConfigurationError(issues) from exc
    _validate_runtime_settings(model)
    return model


def _validate_runtime_settings(settings: SlipstreamConfig) -> None:
    errors: list[str] = []

    if settings.SLIPSTREAM_MAX_CHUNK_BYTES <= 0:
        errors.append("SLIPSTREAM_MAX_CHUNK_BYTES must be a positive number of bytes.")
    if settings.SLIPSTREAM_MAX_RETRIES < 0:
        errors.append("SLIPSTREAM_MAX_RETRIES cannot be negative.")

    timeouts = {
        "SLIPSTREAM_NAVIGATION_TIMEOUT": settings.SLIPSTREAM_NAVIGATION_TIMEOUT,
        "SLIPSTREAM_TRIGGER_TIMEOUT": settings.SLIPSTREAM_TRIGGER_TIMEOUT,
        "SLIPSTREAM_COMPLETION_TIMEOUT": settings.SLIPSTREAM_COMPLETION_TIMEOUT,
        "SLIPSTREAM_DOWNLOAD_TIMEOUT": settings.SLIPSTREAM_DOWNLOAD_TIMEOUT,
        "SLIPSTREAM_POLL_INTERVAL": settings.SLIPSTREAM_POLL_INTERVAL,
    }
    non_positive = [name for name, value in timeouts.items() if value <= 0]
    if non_positive:
        errors.append(
            "The following timeouts must be greater than zero: "
            f"{', '.join(non_positive)}."
        )
    if settings.SLIPSTREAM_UPLOAD_SETTLE < 0:
        errors.append("SLIPSTREAM_UPLOAD_SETTLE cannot be negative.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> SlipstreamConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


def browser_options(settings: SlipstreamConfig, *, debug: bool = False) -> BrowserOptions:
    """Derive browser launch options; debug mode shows the browser slowly."""

    debug = debug or settings.SLIPSTREAM_DEBUG
    return BrowserOptions(
        headless=settings.SLIPSTREAM_HEADLESS and not debug,
        slow_mo_ms=500 if debug else 0,
        locale=settings.SLIPSTREAM_BROWSER_LOCALE,
        timezone_id=settings.SLIPSTREAM_TIMEZONE,
    )


def session_timeouts(settings: SlipstreamConfig) -> SessionTimeouts:
    return SessionTimeouts(
        navigation=settings.SLIPSTREAM_NAVIGATION_TIMEOUT,
        upload_settle=settings.SLIPSTREAM_UPLOAD_SETTLE,
        trigger=settings.SLIPSTREAM_TRIGGER_TIMEOUT,
        completion=settings.SLIPSTREAM_COMPLETION_TIMEOUT,
        download=settings.SLIPSTREAM_DOWNLOAD_TIMEOUT,
        poll_interval=settings.SLIPSTREAM_POLL_INTERVAL,
    )
