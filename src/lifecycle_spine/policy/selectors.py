"""Compiled target selectors.

A policy addresses its targets through a selector expression:

    ``dw.sales``              every segment of one dataset (literal namespace)
    ``dw.sales:P2023*``       glob over full target ids
    ``dw.*``                  glob over namespaces
    ``re:dw\\.sales_(eu|us)`` regular expression (full match on namespace or target id)
    ``tag:pii``               targets carrying every listed tag (comma separated)

Selectors are compiled once and cached per evaluation cycle through
:class:`SelectorCache`.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from enum import Enum
from typing import cast

from lifecycle_spine.targets.models import TargetObject

_GLOB_CHARS = frozenset("*?[")


class SelectorKind(str, Enum):
    GLOB = "GLOB"
    REGEX = "REGEX"
    TAG = "TAG"


class SelectorError(ValueError):
    """Selector expression does not compile."""


@dataclass(frozen=True)
class Selector:
    """A compiled selector expression."""

    expression: str
    kind: SelectorKind
    pattern: re.Pattern[str] | None = None
    tags: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.kind is not SelectorKind.TAG and self.pattern is None:
            raise SelectorError(f"{self.kind.value} selector {self.expression!r} has no compiled pattern")

    @property
    def is_literal(self) -> bool:
        """Glob without wildcards: names a concrete namespace or target."""
        return self.kind is SelectorKind.GLOB and not (_GLOB_CHARS & set(self.expression))

    @property
    def namespace(self) -> str | None:
        """Namespace named by a literal selector."""
        if not self.is_literal:
            return None
        return self.expression.partition(":")[0]

    def matches(self, target: TargetObject) -> bool:
        if self.kind is SelectorKind.TAG:
            return self.tags.issubset(target.tags)
        pattern = cast("re.Pattern[str]", self.pattern)
        if self.kind is SelectorKind.GLOB and ":" not in self.expression:
            return pattern.fullmatch(target.namespace) is not None
        if self.kind is SelectorKind.GLOB:
            return pattern.fullmatch(target.target_id) is not None
        return (
            pattern.fullmatch(target.namespace) is not None
            or pattern.fullmatch(target.target_id) is not None
        )

    def overlaps(self, other: Selector) -> bool:
        """Conservative overlap check used for registration warnings."""
        if self.expression == other.expression:
            return True
        if self.is_literal and other.is_literal:
            return self.namespace == other.namespace
        if self.is_literal and other.kind is not SelectorKind.TAG and other.pattern is not None:
            return other.pattern.fullmatch(self.expression) is not None or (
                other.pattern.fullmatch(self.namespace or "") is not None
            )
        if other.is_literal:
            return other.overlaps(self)
        return False


def compile_selector(expression: str) -> Selector:
    """Compile a selector expression.

    Raises:
        SelectorError: Empty expression, invalid regex or empty tag list
    """
    expression = (expression or "").strip()
    if not expression:
        raise SelectorError("Selector is empty")

    if expression.startswith("re:"):
        source = expression[3:]
        if not source:
            raise SelectorError("Regex selector has no pattern")
        try:
            return Selector(expression, SelectorKind.REGEX, pattern=re.compile(source))
        except re.error as e:
            raise SelectorError(f"Invalid regex selector {source!r}: {e}") from e

    if expression.startswith("tag:"):
        tags = frozenset(t.strip() for t in expression[4:].split(",") if t.strip())
        if not tags:
            raise SelectorError("Tag selector names no tags")
        return Selector(expression, SelectorKind.TAG, tags=tags)

    namespace = expression.partition(":")[0]
    if "." not in namespace and not (_GLOB_CHARS & set(namespace)):
        raise SelectorError(f"Selector {expression!r} must name 'owner.name' or use a pattern")
    return Selector(expression, SelectorKind.GLOB, pattern=re.compile(fnmatch.translate(expression)))


class SelectorCache:
    """Per-cycle memo of compiled selectors."""

    def __init__(self) -> None:
        self._compiled: dict[str, Selector] = {}

    def get(self, expression: str) -> Selector:
        selector = self._compiled.get(expression)
        if selector is None:
            selector = compile_selector(expression)
            self._compiled[expression] = selector
        return selector

    def __len__(self) -> int:
        return len(self._compiled)

    def clear(self) -> None:
        self._compiled.clear()


__all__ = ["Selector", "SelectorCache", "SelectorError", "SelectorKind", "compile_selector"]
