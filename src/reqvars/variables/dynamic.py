"""Generators for ``{{$name}}`` dynamic variables.

Each occurrence of a dynamic token is generated independently; nothing is
memoized across tokens, even within one template.

Example:
    >>> provider = DynamicVariableProvider()
    >>> provider.generate("randomInt", ["1", "6"])  # doctest: +SKIP
    '4'
    >>> provider.generate("nope", []) is None
    True
"""

from __future__ import annotations

import logging
import random
import string
import time
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from reqvars.errors import ErrorCode

logger = logging.getLogger(__name__)

Generator = Callable[[Sequence[str]], str]

RANDOM_INT_DEFAULT_RANGE = (0, 999)
RANDOM_STRING_DEFAULT_LENGTH = 8
_ALPHANUMERIC = string.ascii_letters + string.digits


def _parse_int(raw: str) -> int | None:
    try:
        return int(raw.strip())
    except (TypeError, ValueError):
        return None


def _timestamp(args: Sequence[str]) -> str:
    return str(int(time.time()))


def _timestamp_ms(args: Sequence[str]) -> str:
    return str(int(time.time() * 1000))


def _iso_timestamp(args: Sequence[str]) -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _uuid(args: Sequence[str]) -> str:
    return str(uuid.uuid4())


def _random_int(args: Sequence[str]) -> str:
    low, high = RANDOM_INT_DEFAULT_RANGE
    if len(args) == 2:
        parsed_low, parsed_high = _parse_int(args[0]), _parse_int(args[1])
        if parsed_low is not None and parsed_high is not None:
            low, high = sorted((parsed_low, parsed_high))
        else:
            logger.debug(
                "[%s] randomInt%r: bounds are not integers, using default range",
                ErrorCode.MALFORMED_GENERATOR_ARGS.value,
                tuple(args),
            )
    elif args:
        logger.debug(
            "[%s] randomInt expects 0 or 2 arguments, got %d",
            ErrorCode.MALFORMED_GENERATOR_ARGS.value,
            len(args),
        )
    return str(random.randint(low, high))


def _random_string(args: Sequence[str]) -> str:
    length = RANDOM_STRING_DEFAULT_LENGTH
    if args:
        parsed = _parse_int(args[0])
        if parsed is not None and parsed >= 0:
            length = parsed
        else:
            logger.debug(
                "[%s] randomString(%r): length is not a non-negative integer",
                ErrorCode.MALFORMED_GENERATOR_ARGS.value,
                args[0],
            )
    return "".join(random.choices(_ALPHANUMERIC, k=length))


DEFAULT_GENERATORS: dict[str, Generator] = {
    "timestamp": _timestamp,
    "timestampms": _timestamp_ms,
    "isotimestamp": _iso_timestamp,
    "uuid": _uuid,
    "randomint": _random_int,
    "randomstring": _random_string,
}


class DynamicVariableProvider:
    """Registry of named generators, looked up by lower-cased name."""

    def __init__(self, generators: dict[str, Generator] | None = None) -> None:
        self._generators: dict[str, Generator] = {}
        for name, generator in (generators or DEFAULT_GENERATORS).items():
            self.register(name, generator)

    def register(self, name: str, generator: Generator) -> None:
        """Add or replace a generator."""
        self._generators[name.lower()] = generator

    def names(self) -> list[str]:
        return sorted(self._generators)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._generators

    def generate(self, name: str, args: Sequence[str] = ()) -> str | None:
        """Produce a fresh value, or None when ``name`` is not registered."""
        generator = self._generators.get(name.lower())
        if generator is None:
            return None
        return generator(list(args))
