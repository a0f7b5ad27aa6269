"""
Capability flags and immutable capability sets.

A capability names a launch mode a capacity offering can satisfy or a
workload can run under. Legality of a binding is decided purely by set
intersection over these flags.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator


class Capability(Enum):
    """Launch/compatibility modes."""

    FIXED_HOST = "FIXED_HOST"  # Self-managed hosts registered to the cluster
    MANAGED_ELASTIC = "MANAGED_ELASTIC"  # Platform-managed instances
    SERVERLESS = "SERVERLESS"  # No visible hosts
    EXTERNAL = "EXTERNAL"  # On-premises / outside the platform

    @classmethod
    def parse(cls, value: str | Capability) -> Capability:
        """Parse a flag name or platform alias (case-insensitive)."""
        if isinstance(value, Capability):
            return value
        if not isinstance(value, str):
            raise TypeError(f"Capability must be a string, got {type(value).__name__}")
        key = value.strip().upper().replace("-", "_")
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(sorted([c.value for c in cls] + list(_ALIASES)))
            raise ValueError(f"Unknown capability '{value}'. Must be one of: {valid}") from None


_ALIASES: dict[str, Capability] = {
    "EC2": Capability.FIXED_HOST,
    "MANAGED_INSTANCES": Capability.MANAGED_ELASTIC,
    "FARGATE": Capability.SERVERLESS,
}

# Modes whose placement is sized from task-level cpu/memory totals.
TASK_LEVEL_MODES = frozenset({Capability.MANAGED_ELASTIC, Capability.SERVERLESS})


@dataclass(frozen=True)
class CapabilitySet:
    """Immutable set of capability flags."""

    flags: frozenset[Capability] = frozenset()

    @classmethod
    def of(cls, *flags: Capability | str) -> CapabilitySet:
        return cls(frozenset(Capability.parse(f) for f in flags))

    @classmethod
    def parse(cls, values: Iterable[str | Capability] | str) -> CapabilitySet:
        """Parse a list of names, or a single ``A|B`` string."""
        if isinstance(values, str):
            values = [v for v in values.split("|") if v.strip()]
        return cls(frozenset(Capability.parse(v) for v in values))

    def union(self, other: CapabilitySet) -> CapabilitySet:
        return CapabilitySet(self.flags | other.flags)

    def intersection(self, other: CapabilitySet) -> CapabilitySet:
        return CapabilitySet(self.flags & other.flags)

    def intersects(self, other: CapabilitySet) -> bool:
        return not self.flags.isdisjoint(other.flags)

    def is_subset_of(self, other: CapabilitySet) -> bool:
        return self.flags <= other.flags

    def __or__(self, other: CapabilitySet) -> CapabilitySet:
        return self.union(other)

    def __and__(self, other: CapabilitySet) -> CapabilitySet:
        return self.intersection(other)

    def __le__(self, other: CapabilitySet) -> bool:
        return self.is_subset_of(other)

    def __contains__(self, flag: object) -> bool:
        return flag in self.flags

    def __iter__(self) -> Iterator[Capability]:
        # Stable order for diagnostics and serialization
        return iter(sorted(self.flags, key=lambda c: c.value))

    def __len__(self) -> int:
        return len(self.flags)

    def __bool__(self) -> bool:
        return bool(self.flags)

    def names(self) -> list[str]:
        return [c.value for c in self]

    def __str__(self) -> str:
        return "|".join(self.names()) or "<none>"


def union(a: CapabilitySet, b: CapabilitySet) -> CapabilitySet:
    return a.union(b)


def intersects(a: CapabilitySet, b: CapabilitySet) -> bool:
    return a.intersects(b)


def is_subset_of(a: CapabilitySet, b: CapabilitySet) -> bool:
    return a.is_subset_of(b)
