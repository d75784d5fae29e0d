"""Presentation-ready views computed from a snapshot."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .config import MAJORITY_THRESHOLD, PROVINCES, REGION_NAME, TOTAL_SEATS
from .models import Bloc, PartySeatResult, TurnoutRecord
from .parsing import normalize_text

HEMICYCLE_START = 180.0
HEMICYCLE_END = 0.0
HEMICYCLE_RANGE = HEMICYCLE_START - HEMICYCLE_END

TURNOUT_REFERENCE_2023: Dict[str, float] = {
    REGION_NAME: 66.54,
    "Zaragoza": 66.15,
    "Huesca": 65.66,
    "Teruel": 70.71,
}


def polar_to_cartesian(
    cx: float, cy: float, radius: float, angle_deg: float
) -> Tuple[float, float]:
    """Screen coordinates (y grows downwards) of a point on a circle."""

    rad = math.radians(angle_deg)
    return cx + radius * math.cos(rad), cy - radius * math.sin(rad)


def displayed_parties(seats: Iterable[PartySeatResult]) -> List[PartySeatResult]:
    return [p for p in seats if p.seats_current > 0 or p.seats_previous > 0]


def order_for_hemicycle(parties: Iterable[PartySeatResult]) -> List[PartySeatResult]:
    """Left bloc from largest to smallest, then right bloc smallest first."""

    parties = list(parties)
    left = sorted(
        (p for p in parties if p.bloc is Bloc.LEFT),
        key=lambda p: p.seats_current,
        reverse=True,
    )
    right = sorted(
        (p for p in parties if p.bloc is Bloc.RIGHT), key=lambda p: p.seats_current
    )
    return left + right


@dataclass(frozen=True)
class HemicycleSegment:
    party: PartySeatResult
    start_angle: float
    end_angle: float

    @property
    def span(self) -> float:
        return self.start_angle - self.end_angle

    @property
    def mid_angle(self) -> float:
        return (self.start_angle + self.end_angle) / 2

    def label_position(
        self, cx: float, cy: float, inner_radius: float, outer_radius: float
    ) -> Tuple[float, float]:
        return polar_to_cartesian(
            cx, cy, (inner_radius + outer_radius) / 2, self.mid_angle
        )


@dataclass(frozen=True)
class HemicycleLayout:
    segments: Tuple[HemicycleSegment, ...]
    total_seats: int
    majority: int

    @property
    def majority_angle(self) -> float:
        if self.total_seats <= 0:
            return HEMICYCLE_START
        return HEMICYCLE_START - (self.majority / self.total_seats) * HEMICYCLE_RANGE

    @property
    def allocated_seats(self) -> int:
        return sum(segment.party.seats_current for segment in self.segments)

    @property
    def filled_angle(self) -> float:
        return sum(segment.span for segment in self.segments)


def build_hemicycle(
    seats: Iterable[PartySeatResult],
    total_seats: int = TOTAL_SEATS,
    majority: int = MAJORITY_THRESHOLD,
) -> HemicycleLayout:
    """Allocate each party an arc proportional to its seats out of ``total_seats``.

    Allocation is clamped to the chamber size, so surplus seats are never
    drawn past 0°; a chamber that is not fully reported leaves a gap.
    """

    ordered = order_for_hemicycle(displayed_parties(seats))
    segments: List[HemicycleSegment] = []
    if total_seats > 0:
        allocated = 0
        for party in ordered:
            start = HEMICYCLE_START - (allocated / total_seats) * HEMICYCLE_RANGE
            allocated = min(allocated + party.seats_current, total_seats)
            end = HEMICYCLE_START - (allocated / total_seats) * HEMICYCLE_RANGE
            segments.append(HemicycleSegment(party, start, end))
    return HemicycleLayout(tuple(segments), total_seats, majority)


def _to_vega_theta(angle_deg: float) -> float:
    # Vega arcs start at 12 o'clock and run clockwise.
    return math.radians(90.0 - angle_deg)


def hemicycle_dataframe(layout: HemicycleLayout) -> pd.DataFrame:
    records = [
        {
            "party": segment.party.name,
            "seats": segment.party.seats_current,
            "seats_previous": segment.party.seats_previous,
            "change": segment.party.change,
            "color": segment.party.color,
            "start_angle": segment.start_angle,
            "end_angle": segment.end_angle,
            "theta": _to_vega_theta(segment.start_angle),
            "theta2": _to_vega_theta(segment.end_angle),
        }
        for segment in layout.segments
    ]
    columns = [
        "party",
        "seats",
        "seats_previous",
        "change",
        "color",
        "start_angle",
        "end_angle",
        "theta",
        "theta2",
    ]
    return pd.DataFrame(records, columns=columns)


@dataclass(frozen=True)
class TurnoutPanelRow:
    name: str
    turnout: float
    reference_turnout: float
    electorate: int
    polling_stations: int
    is_region: bool = False

    @property
    def difference(self) -> float:
        return round(self.turnout - self.reference_turnout, 2)


def _find_territory(
    records: Sequence[TurnoutRecord], name: str
) -> Optional[TurnoutRecord]:
    key = normalize_text(name)
    for record in records:
        if normalize_text(record.territory) == key:
            return record
    return None


def turnout_panel(records: Sequence[TurnoutRecord]) -> List[TurnoutPanelRow]:
    """Region first, then each province, compared with the 2023 turnout."""

    rows: List[TurnoutPanelRow] = []
    for name in (REGION_NAME, *PROVINCES):
        record = _find_territory(records, name)
        rows.append(
            TurnoutPanelRow(
                name=name,
                turnout=record.turnout if record else 0.0,
                reference_turnout=TURNOUT_REFERENCE_2023[name],
                electorate=record.electorate if record else 0,
                polling_stations=record.polling_stations if record else 0,
                is_region=name == REGION_NAME,
            )
        )
    return rows
