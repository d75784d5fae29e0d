"""Immutable records published by the results poller."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Optional, Tuple

from .parsing import municipality_key


class Bloc(IntEnum):
    """Side of the chamber used to order the hemicycle."""

    LEFT = 1
    RIGHT = 2


class Scope(str, Enum):
    REGION = "Comunidad"
    PROVINCE = "Provincia"


@dataclass(frozen=True)
class PartySeatResult:
    name: str
    seats_previous: int
    seats_current: int
    bloc: Optional[Bloc]
    color: str

    @property
    def change(self) -> int:
        return self.seats_current - self.seats_previous


@dataclass(frozen=True)
class PartyVoteShare:
    name: str
    percentage: float
    color: str


@dataclass(frozen=True)
class CountStatus:
    counted_percent: float = 0.0
    last_update: str = ""


@dataclass(frozen=True)
class MunicipalityEntry:
    name: str
    province: str
    leading_party: str
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def key(self) -> str:
        return municipality_key(self.name, self.province)

    def force(self, rank: int) -> Tuple[str, str]:
        """Return ``(siglas, porcentaje)`` for the party placed ``rank``."""

        siglas = self.raw.get(f"siglas_{rank}") or self.raw.get(f"SIGLAS_{rank}") or ""
        percent = (
            self.raw.get(f"porcentaje_{rank}")
            or self.raw.get(f"PORCENTAJE_{rank}")
            or ""
        )
        return str(siglas), str(percent)


class MunicipalityIndex(Mapping):
    """Read-only lookup of municipalities by normalized (name, province)."""

    def __init__(self, entries: Optional[Dict[str, MunicipalityEntry]] = None) -> None:
        self._entries: Dict[str, MunicipalityEntry] = dict(entries or {})

    def __getitem__(self, key: str) -> MunicipalityEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"MunicipalityIndex({len(self._entries)} entries)"

    def lookup(self, name: Any, province: Any) -> Optional[MunicipalityEntry]:
        return self._entries.get(municipality_key(name, province))


@dataclass(frozen=True)
class TurnoutRecord:
    territory: str
    scope: Scope
    time_label: str
    polling_stations: int
    electorate: int
    turnout: float


@dataclass(frozen=True)
class Snapshot:
    """One internally consistent set of results from a single poll cycle."""

    seats: Tuple[PartySeatResult, ...]
    votes: Tuple[PartyVoteShare, ...]
    count_status: CountStatus
    municipalities: MunicipalityIndex
    turnout: Tuple[TurnoutRecord, ...]
    load_id: int
    fetched_at: dt.datetime
