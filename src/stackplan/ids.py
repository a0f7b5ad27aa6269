"""Identifier sources for entities declared without an explicit identifier."""

from __future__ import annotations

import itertools
import re
import uuid
from abc import ABC, abstractmethod

from stackplan.graph.models import EntityKind


class IdentifierSource(ABC):
    """Source of unique identifiers for declared entities."""

    @abstractmethod
    def new_id(self, kind: EntityKind, hint: str | None = None) -> str:
        pass


class SequentialIdSource(IdentifierSource):
    """Deterministic ``<hint-or-kind>-<n>`` identifiers, numbered per kind."""

    def __init__(self) -> None:
        self._counters: dict[EntityKind, itertools.count[int]] = {}

    def new_id(self, kind: EntityKind, hint: str | None = None) -> str:
        counter = self._counters.setdefault(kind, itertools.count(1))
        prefix = slugify(hint) if hint else kind.value
        return f"{prefix}-{next(counter)}"


class UuidIdSource(IdentifierSource):
    """Random identifiers for callers that need global uniqueness."""

    def new_id(self, kind: EntityKind, hint: str | None = None) -> str:
        return f"{kind.value}-{uuid.uuid4().hex[:12]}"


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated form of ``value``."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "entity"
