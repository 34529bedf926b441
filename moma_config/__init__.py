"""
moma_config -- single public entrypoint for model configuration.

Responsibility:
    Provides the ONLY way to obtain scenario parameters at runtime through
    ``get_active_config()``: bill of exchange terms and timeline, the
    event-sequence amounts, claim pairs, verification tolerance, and the
    memory/co-regulator settings.

Architecture position:
    Configuration -- YAML-driven parameter sets.
    This package sits above ``moma_kernel`` and ``moma_engines``. The
    kernel MUST NEVER import from ``moma_config``; bridges in this package
    translate a ModelConfig into engine inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic identity: the same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``KeyError`` / ``ValueError`` -- missing or malformed fields.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``MOMA_CONFIG_TRACE`` log entry containing the config_id, version,
    checksum and claim pair count.
"""

from __future__ import annotations

from pathlib import Path

from moma_config.loader import load_model_config
from moma_config.schema import ModelConfig
from moma_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> ModelConfig:
    """The ONLY public configuration entrypoint.

    Args:
        name: Configuration set name; loads ``<config_dir>/<name>.yaml``.
        config_dir: Override path to configuration sets directory.
            Defaults to moma_config/sets/.

    Returns:
        The parsed, frozen ModelConfig.

    Raises:
        FileNotFoundError: If no configuration set with ``name`` exists.
        KeyError: If a required field is missing.
        ValueError: If a field is malformed.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No configuration set {name!r} in {sets_dir}")

    config = load_model_config(path)

    _logger.info(
        "MOMA_CONFIG_TRACE",
        extra={
            "trace_type": "MOMA_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "claim_pair_count": len(config.claim_pairs),
        },
    )
    return config


__all__ = ["ModelConfig", "get_active_config"]
