"""
congregation_config: single public entrypoint for write pipeline configuration.

Responsibility:
    Provides the ONLY way to obtain the write pipeline configuration at
    runtime, through ``get_active_config()``, and the backing store
    settings, through ``load_store_settings()``.

Architecture position:
    Configuration -- YAML-driven, validated before use.  This package sits
    above ``congregation_kernel`` and below ``congregation_services``.  The
    kernel MUST NEVER import from ``congregation_config``; ``bridges``
    translates configuration into kernel objects.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- structural validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CONGREGATION_CONFIG_TRACE`` log entry with the config id, version,
    checksum and per-kind field counts.
"""

from __future__ import annotations

import logging
from pathlib import Path

from congregation_config.loader import load_config
from congregation_config.schema import WritePipelineConfig
from congregation_config.settings import StoreSettings, load_store_settings
from congregation_config.validator import validate_configuration

_logger = logging.getLogger("congregation_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> WritePipelineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to the YAML file.  Defaults to
            congregation_config/sets/default.yaml.

    Returns:
        A validated ``WritePipelineConfig``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If configuration validation fails.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    config = load_config(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"detail": warning})

    _logger.info(
        "CONGREGATION_CONFIG_TRACE",
        extra={
            "trace_type": "CONGREGATION_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "attempt_budget": config.attempt_budget,
            "record_kinds": {
                d.kind: len(d.fields) for d in config.record_kinds
            },
        },
    )
    return config


__all__ = [
    "StoreSettings",
    "WritePipelineConfig",
    "get_active_config",
    "load_store_settings",
]
