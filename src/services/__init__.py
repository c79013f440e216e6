"""
Core services: seat ledger, ride and booking lifecycles, rating aggregator
and effect dispatch.

Every lifecycle operation runs inside the caller's ``AsyncSession`` and
returns an ``Outcome``.  The caller commits and only then hands
``Outcome.events`` to the ``EffectDispatcher``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from src.domain.events import DomainEvent

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    entity: T
    events: list[DomainEvent] = field(default_factory=list)
    affected: list = field(default_factory=list)
