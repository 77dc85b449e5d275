"""
pricewire versioning.

- __version__: semantic base version of the package
- version_info(): structured dict for logs and the CLI
"""

from __future__ import annotations

import os
import platform

# Bump on wire-format changes (marker, selectors, lite layout).
__version__ = "0.1.0"

# Version tag embedded in the full-encoding marker preimage.
PROTOCOL_VERSION = "0.0.1"


def build_meta() -> str:
    """
    Return the effective version string. PRICEWIRE_VERSION overrides it verbatim
    (useful for CI-stamped builds).
    """
    env_version = os.getenv("PRICEWIRE_VERSION")
    if env_version:
        return env_version.strip()
    return __version__


def version_info() -> dict:
    return {
        "version": __version__,
        "build": build_meta(),
        "protocol": PROTOCOL_VERSION,
        "python": platform.python_version(),
    }


__all__ = ["__version__", "PROTOCOL_VERSION", "build_meta", "version_info"]
