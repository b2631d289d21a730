"""
Logging setup and redaction helpers for the CLIs.

Library modules only call ``logging.getLogger(__name__)``; handlers and levels
are configured once by the entry points through ``configure_logging``.
"""

import logging
import os
from typing import Any

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _resolve_level() -> int:
    level = os.getenv("LOG_LEVEL")
    if level:
        return getattr(logging, level.upper(), logging.INFO)
    if os.getenv("DEBUG") == "1":
        return logging.DEBUG
    return logging.WARNING


def configure_logging(level: int | None = None) -> None:
    """
    Configure the root logger once.

    ``LOG_LEVEL`` (e.g. ``INFO``) wins, then ``DEBUG=1``; otherwise only
    warnings are shown so CLI output stays readable.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logging.basicConfig(
        level=level if level is not None else _resolve_level(),
        format=LOG_FORMAT,
    )
    # web3/urllib3 are chatty at DEBUG
    logging.getLogger("web3").setLevel(max(logging.INFO, logging.getLogger().level))
    _CONFIGURED = True


_SENSITIVE_EXACT_KEYS = {
    "authorization",
    "private_key",
    "secret",
    "signature",
    "sig",
}
_SENSITIVE_SUFFIXES = ("_private_key", "_secret", "_signature", "_key")


def _should_redact(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in _SENSITIVE_EXACT_KEYS:
        return True
    return key_lower.endswith(_SENSITIVE_SUFFIXES)


def mask_secret(value: str | None, visible: int = 10) -> str:
    """Show only the first ``visible`` characters of a secret."""
    if not value:
        return "<not set>"
    if len(value) <= visible:
        return "*" * len(value)
    return f"{value[:visible]}..."


def redact(value: Any, *, sensitive: bool = False) -> Any:
    """
    Return a copy of ``value`` with secrets replaced by length markers.

    Dict keys named like keys or signatures (``private_key``, ``signature``,
    ``*_private_key``...) mark their whole subtree as sensitive.
    """
    if isinstance(value, dict):
        return {
            key: redact(item, sensitive=(sensitive or _should_redact(str(key))))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item, sensitive=sensitive) for item in value]
    if isinstance(value, tuple):
        return tuple(redact(item, sensitive=sensitive) for item in value)
    if isinstance(value, str):
        return f"<redacted:{len(value)} chars>" if sensitive else value
    if isinstance(value, (bytes, bytearray)):
        return f"<redacted:bytes:{len(value)}>" if sensitive else f"<bytes:{len(value)}>"
    return value
