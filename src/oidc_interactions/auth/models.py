from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated calling service.
    """

    subject: str
    roles: frozenset[str]
