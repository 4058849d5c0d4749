"""
Logging utilities for the SDK and the helper scripts.

The SDK only emits records through module-level loggers; applications decide
handlers. ``configure_logging`` is a convenience for scripts and examples.
"""

import logging
import sys
from typing import Optional


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Render a token or key for log output, keeping only its tail."""
    if not value:
        return "<none>"
    if len(value) <= visible:
        return "*" * len(value)
    return f"{'*' * 8}{value[-visible:]}"


__all__ = ["configure_logging", "mask_secret"]
