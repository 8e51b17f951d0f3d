from __future__ import annotations

from collections.abc import Sequence

from .model import ParsedCommand

DEFAULT_PREFIXES: tuple[str, ...] = ("#", "-", "!")


def validate_prefixes(prefixes: Sequence[str]) -> tuple[str, ...]:
    """Return prefixes as a tuple, rejecting sets that can match ambiguously."""
    cleaned = tuple(prefixes)
    if not cleaned:
        raise ValueError("at least one command prefix is required")
    for prefix in cleaned:
        if not isinstance(prefix, str) or not prefix:
            raise ValueError("command prefixes must be non-empty strings")
    for i, prefix in enumerate(cleaned):
        for j, other in enumerate(cleaned):
            if i != j and other.startswith(prefix):
                raise ValueError(
                    f"prefix {prefix!r} is a prefix of {other!r}; matching would be ambiguous"
                )
    return cleaned


def match_prefix(text: str, prefixes: Sequence[str]) -> str | None:
    if not text:
        return None
    for prefix in prefixes:
        if text.startswith(prefix):
            return prefix
    return None


def is_command(text: str, prefixes: Sequence[str] = DEFAULT_PREFIXES) -> bool:
    return match_prefix(text, prefixes) is not None


def extract_command(
    text: str, prefixes: Sequence[str] = DEFAULT_PREFIXES
) -> ParsedCommand | None:
    prefix = match_prefix(text, prefixes)
    if prefix is None:
        return None
    command_text = text[len(prefix) :].strip()
    # single-space split keeps empty tokens from repeated spaces
    parts = command_text.split(" ")
    return ParsedCommand(
        prefix=prefix,
        name=parts[0].lower(),
        args=tuple(parts[1:]),
        full_text=command_text,
    )
