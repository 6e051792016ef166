"""
valuation_config -- single public entrypoint for valuation configuration.

Responsibility:
    Provides ``get_active_config()``, the only way to turn a YAML file into
    a validated ``ValuationConfig`` snapshot, and ``ValuationConfigStore``,
    the holder of the process-wide active snapshot.

Architecture position:
    Configuration -- sits above ``valuation_kernel`` and
    ``valuation_engines`` and below ``valuation_services``.  The kernel and
    the engines MUST NEVER import from ``valuation_config``.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - Snapshots are immutable.  A reload replaces the whole snapshot in one
      reference assignment; readers see the old or the new snapshot, never
      a mix.
    - Deterministic checksum: the same rules always produce the same
      ``ValuationConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` / ``ValueError`` -- the file is not a valid document.
    - ``ValuationConfigError`` -- validation found errors.  The active
      snapshot of a store is left unchanged.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``VALUATION_CONFIG_TRACE`` log entry with the checksum, rule count,
    default currency and source path.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from valuation_kernel.exceptions import ValuationConfigError
from valuation_config.loader import build_config, compute_checksum, load_config_file
from valuation_config.schema import DEFAULT_CURRENCY, ValuationConfig, ValuationRule
from valuation_config.validator import ConfigValidationResult, validate_valuation_config

_logger = logging.getLogger("valuation_kernel.config")


def get_active_config(path: Path | str) -> ValuationConfig:
    """Load, validate and trace the configuration at ``path``.

    Postconditions:
        - The returned snapshot passed ``validate_valuation_config``.
        - A ``VALUATION_CONFIG_TRACE`` log entry was emitted.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the document has the wrong shape.
        ValuationConfigError: If validation reports errors.
    """
    config = load_config_file(Path(path))
    validation = validate_valuation_config(config)
    for warning in validation.warnings:
        _logger.warning(
            "valuation_config_warning",
            extra={"source": config.source, "warning": warning},
        )
    if not validation.is_valid:
        raise ValuationConfigError(validation.errors, source=config.source)

    _logger.info(
        "VALUATION_CONFIG_TRACE",
        extra={
            "trace_type": "VALUATION_CONFIG_TRACE",
            "checksum": config.checksum,
            "rule_count": config.rule_count,
            "default_currency": config.default_currency,
            "source": config.source,
        },
    )
    return config


class ValuationConfigStore:
    """
    Holder of the active valuation configuration snapshot.

    Contract:
        Reads (``current()``, ``current_valuation_rules()``) take no lock;
        they return whatever snapshot the reference points to.  Writers
        (``replace()``, ``reload()``) serialize on a lock and swap the
        reference once the new snapshot is fully built and validated.
    """

    def __init__(self, config: ValuationConfig | None = None):
        self._config = config or build_config(())
        self._write_lock = threading.Lock()

    def current(self) -> ValuationConfig:
        return self._config

    def current_valuation_rules(self) -> tuple[ValuationRule, ...]:
        return self._config.rules

    @property
    def default_currency(self) -> str:
        return self._config.default_currency

    def replace(self, config: ValuationConfig) -> ValuationConfig:
        """Install ``config`` as the active snapshot and return the previous one."""
        with self._write_lock:
            previous = self._config
            self._config = config
        _logger.info(
            "valuation_config_replaced",
            extra={
                "previous_checksum": previous.checksum,
                "checksum": config.checksum,
                "rule_count": config.rule_count,
            },
        )
        return previous

    def reload(self, path: Path | str) -> ValuationConfig:
        """
        Load ``path`` and make it active.

        On any failure the exception propagates and the active snapshot is
        left untouched.
        """
        with self._write_lock:
            config = get_active_config(path)
            previous = self._config
            self._config = config
        _logger.info(
            "valuation_config_reloaded",
            extra={
                "source": config.source,
                "previous_checksum": previous.checksum,
                "checksum": config.checksum,
            },
        )
        return config


__all__ = [
    "ConfigValidationResult",
    "DEFAULT_CURRENCY",
    "ValuationConfig",
    "ValuationConfigStore",
    "ValuationRule",
    "build_config",
    "compute_checksum",
    "get_active_config",
    "validate_valuation_config",
]
