"""
Argument Sanitizer

Rewrites raw command arguments into a form that cannot alter shell or
argument-vector interpretation.

Two paths:
- strict: shell metacharacters are removed outright
- lenient: for call-signature arguments such as ``transfer(address,uint256)``,
  only line breaks and whitespace are normalized so the literal signature
  reaches the tool intact

Both paths drop NUL and other control characters. Either path rejects
arguments that end up empty or longer than MAX_ARGUMENT_LENGTH.

Environment overrides are validated, not rewritten: a name or value the OS
cannot carry is rejected.
"""

import re
from typing import Iterable, Mapping, Sequence

from foundry_runner.core.exceptions import InvalidArgumentError

MAX_ARGUMENT_LENGTH = 1000

# Positional convention of the wrapped tools: subcommand, target, signature, ...
SIGNATURE_MIN_INDEX = 2

SHELL_METACHARACTERS = ";&|`${}<>'\""

_METACHARACTER_RE = re.compile(r"[;&|`${}<>'\"]")
_LINE_BREAK_RE = re.compile(r"[\r\n]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")
_ENV_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SIGNATURE_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\([^)]*\)")


def is_call_signature(value: str) -> bool:
    """True for ``name(type,...)`` shapes that carry no shell metacharacters."""
    candidate = value.strip()
    return (
        _SIGNATURE_RE.fullmatch(candidate) is not None
        and _METACHARACTER_RE.search(candidate) is None
    )


def _normalize(value: str) -> str:
    value = _CONTROL_RE.sub("", value)
    value = _LINE_BREAK_RE.sub("", value)
    return _WHITESPACE_RE.sub(" ", value).strip()


def sanitize_signature(value: str) -> str:
    """Lenient path: keep parentheses and commas, normalize whitespace."""
    return _normalize(value)


def sanitize_text(value: str) -> str:
    """Strict path: drop shell metacharacters, normalize whitespace."""
    return _normalize(_METACHARACTER_RE.sub("", value))


def _check_bounds(value: str, index: int) -> str:
    if not value:
        raise InvalidArgumentError(
            f"Argument {index} is empty after sanitization",
            index=index,
        )
    if len(value) > MAX_ARGUMENT_LENGTH:
        raise InvalidArgumentError(
            f"Argument {index} exceeds {MAX_ARGUMENT_LENGTH} characters",
            index=index,
            context={"length": len(value)},
        )
    return value


def sanitize_args(
    raw_args: Sequence[str],
    structural: Iterable[int] | None = None,
) -> list[str]:
    """
    Sanitize an argument vector.

    Args:
        raw_args: Arguments as supplied by the caller, subcommand first
        structural: Indices that carry call-signature syntax. When omitted,
            any argument at index >= 2 shaped like a signature is treated
            as one.

    Returns:
        Sanitized arguments, same length and order as ``raw_args``

    Raises:
        InvalidArgumentError: An argument is not a string, is empty or too
            long after sanitization, or an index flagged as structural does
            not hold a call signature
    """
    explicit = frozenset(structural) if structural is not None else None
    sanitized = []

    for index, arg in enumerate(raw_args):
        if not isinstance(arg, str):
            raise InvalidArgumentError(
                f"Argument {index} must be a string, got {type(arg).__name__}",
                index=index,
            )

        if explicit is None:
            lenient = index >= SIGNATURE_MIN_INDEX and is_call_signature(arg)
        elif index in explicit:
            if not is_call_signature(arg):
                raise InvalidArgumentError(
                    f"Argument {index} is not a valid call signature",
                    index=index,
                )
            lenient = True
        else:
            lenient = False

        value = sanitize_signature(arg) if lenient else sanitize_text(arg)
        sanitized.append(_check_bounds(value, index))

    return sanitized


def validate_environment(overrides: Mapping[str, str] | None) -> dict[str, str]:
    """
    Check caller environment overrides before anything is spawned.

    Returns:
        A plain copy of the overrides

    Raises:
        InvalidArgumentError: A name is not a portable identifier, or a
            value is not a string or contains a NUL byte
    """
    checked: dict[str, str] = {}
    for name, value in (overrides or {}).items():
        if not isinstance(name, str) or not _ENV_NAME_RE.fullmatch(name):
            raise InvalidArgumentError(
                f"Invalid environment variable name: {name!r}",
                context={"variable": repr(name)},
            )
        if not isinstance(value, str) or "\x00" in value:
            raise InvalidArgumentError(
                f"Invalid value for environment variable {name}",
                context={"variable": name},
            )
        checked[name] = value
    return checked
