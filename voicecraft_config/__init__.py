"""
voicecraft_config -- single public entrypoint for kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.  Secrets are never stored in the file; it names the
    environment variables that hold them and the bridges resolve them.

Architecture position:
    Configuration -- sits above ``voicecraft_kernel``.  The kernel MUST
    NEVER import from ``voicecraft_config``; ``bridges`` translate settings
    into kernel objects.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``KeyError`` / ``ValueError`` -- schema or value validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a ``config_loaded``
    log entry with the config_id, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from voicecraft_config.loader import load_yaml_file, parse_configuration
from voicecraft_config.schema import KernelConfiguration

_logger = logging.getLogger("voicecraft_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> KernelConfiguration:
    """
    The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to the packaged defaults.yaml.

    Returns:
        KernelConfiguration with its source checksum.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_configuration(load_yaml_file(source))

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(source),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "KernelConfiguration",
    "get_active_config",
]
