"""
Environment configuration for rna builds.

The RNA_ENV environment variable supplies the default for the ``production``
build flag. It is read once, when the build configuration is loaded, and the
resulting value is threaded through the build explicitly.

Environment values:
    - development (default): source maps, readable output
    - production: minified output

Usage:
    from rna.core.environment import get_rna_env

    env = get_rna_env()  # Returns RnaEnv.DEVELOPMENT or RnaEnv.PRODUCTION
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from enum import StrEnum

logger = logging.getLogger(__name__)


class RnaEnv(StrEnum):
    """Build environment values."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


RNA_ENV_VAR = "RNA_ENV"


def get_rna_env(environ: Mapping[str, str] | None = None) -> RnaEnv:
    """Get the current build environment from RNA_ENV.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        RnaEnv.PRODUCTION for "production"/"prod", otherwise DEVELOPMENT.

    Examples:
        >>> get_rna_env({"RNA_ENV": "prod"})
        <RnaEnv.PRODUCTION: 'production'>
    """
    source = os.environ if environ is None else environ
    env_value = source.get(RNA_ENV_VAR, "").lower().strip()

    if env_value in ("production", "prod"):
        return RnaEnv.PRODUCTION
    if env_value in ("development", "dev", ""):
        return RnaEnv.DEVELOPMENT

    logger.warning(
        "Unknown %s value '%s'. Valid values: development, production. "
        "Defaulting to development.",
        RNA_ENV_VAR,
        env_value,
    )
    return RnaEnv.DEVELOPMENT
