"""Credential checks for backend and storage keys read from settings."""
from __future__ import annotations

PLACEHOLDER_SECRETS = frozenset({"changeme", "change-me", "placeholder", "example", "sample", "your-key-here"})


class MissingSecretError(RuntimeError):
    """A credential is unset, blank, or still holds a template value."""


def is_placeholder(value: str | None) -> bool:
    """True for ``None``, whitespace, and values copied unchanged from ``.env`` templates."""

    text = (value or "").strip()
    return not text or text.lower() in PLACEHOLDER_SECRETS


def require_secret(name: str, value: str | None) -> str:
    if is_placeholder(value):
        raise MissingSecretError(f"{name} must be set to a real credential")
    return value.strip()


__all__ = ["MissingSecretError", "PLACEHOLDER_SECRETS", "is_placeholder", "require_secret"]
