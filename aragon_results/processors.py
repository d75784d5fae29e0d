"""Turn spreadsheet rows into typed result records.

Every processor is a pure function over the rows produced by
:func:`aragon_results.poller.parse_csv`. Rows without their identifying
field are dropped; malformed cells fall back to defaults instead of
aborting the poll cycle.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import CURRENT_YEAR, PREVIOUS_YEAR, REGION_NAME
from .models import (
    Bloc,
    CountStatus,
    MunicipalityEntry,
    MunicipalityIndex,
    PartySeatResult,
    PartyVoteShare,
    Scope,
    TurnoutRecord,
)
from .parsing import (
    format_update_timestamp,
    is_blank,
    municipality_key,
    normalize_color,
    normalize_text,
    parse_locale_int,
    parse_locale_number,
    pick,
)

Row = Mapping[str, Any]

FIELD_ALIASES: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "seats": {
        "name": ("Partido", "partido", "PARTIDO"),
        "previous": (str(PREVIOUS_YEAR),),
        "current": (str(CURRENT_YEAR),),
        "bloc": ("lado", "Lado", "LADO"),
        "color": ("color", "Color", "COLOR"),
    },
    "votes": {
        "name": ("siglas", "Siglas", "SIGLAS"),
        "percentage": ("porcentaje", "Porcentaje", "PORCENTAJE"),
        "color": ("color", "Color", "COLOR"),
    },
    "count_status": {
        "counted": ("escrutado", "Escrutado"),
        "day": ("dia", "Dia", "fecha", "Fecha"),
        "time": ("hora", "Hora"),
    },
    "municipalities": {
        "name": ("municipio_nombre", "MUNICIPIO", "municipio"),
        "province": ("PROVINCIA", "provincia"),
        "leader": ("siglas_1", "SIGLAS_1"),
    },
    "turnout": {
        "territory": ("territorio", "Territorio", "TERRITORIO"),
        "time": ("hora", "Hora"),
        "turnout": ("participacion", "Participacion", "participación"),
        "stations": ("mesas", "Mesas"),
        "electorate": ("censo", "Censo"),
    },
}


def _field(row: Row, source: str, name: str, default: str = "") -> Any:
    return pick(row, FIELD_ALIASES[source][name], default)


def _text(row: Row, source: str, name: str) -> str:
    return str(_field(row, source, name)).strip()


def _parse_bloc(value: Any) -> Optional[Bloc]:
    try:
        return Bloc(parse_locale_int(value))
    except ValueError:
        return None


def process_seats(rows: Iterable[Row]) -> List[PartySeatResult]:
    results: List[PartySeatResult] = []
    for row in rows:
        name = _text(row, "seats", "name")
        if not name:
            continue
        results.append(
            PartySeatResult(
                name=name,
                seats_previous=max(parse_locale_int(_field(row, "seats", "previous")), 0),
                seats_current=max(parse_locale_int(_field(row, "seats", "current")), 0),
                bloc=_parse_bloc(_field(row, "seats", "bloc")),
                color=normalize_color(_field(row, "seats", "color")),
            )
        )
    results.sort(key=lambda item: item.seats_current, reverse=True)
    return results


def process_votes(rows: Iterable[Row]) -> List[PartyVoteShare]:
    results: List[PartyVoteShare] = []
    for row in rows:
        name = _text(row, "votes", "name")
        if not name:
            continue
        results.append(
            PartyVoteShare(
                name=name,
                percentage=parse_locale_number(_field(row, "votes", "percentage")),
                color=normalize_color(_field(row, "votes", "color")),
            )
        )
    results.sort(key=lambda item: item.percentage, reverse=True)
    return results


def process_count_status(rows: Sequence[Row]) -> CountStatus:
    """Read counting progress from the first row of the status sheet."""

    if not rows:
        return CountStatus()
    row = rows[0]
    return CountStatus(
        counted_percent=parse_locale_number(_field(row, "count_status", "counted")),
        last_update=format_update_timestamp(
            _field(row, "count_status", "day"), _field(row, "count_status", "time")
        ),
    )


def process_municipalities(rows: Iterable[Row]) -> MunicipalityIndex:
    entries: Dict[str, MunicipalityEntry] = {}
    for row in rows:
        name = _text(row, "municipalities", "name")
        province = _text(row, "municipalities", "province")
        if not name or not province:
            continue
        entries[municipality_key(name, province)] = MunicipalityEntry(
            name=name,
            province=province,
            leading_party=_text(row, "municipalities", "leader"),
            raw=MappingProxyType(dict(row)),
        )
    return MunicipalityIndex(entries)


def classify_scope(territory: str) -> Scope:
    if normalize_text(territory) == normalize_text(REGION_NAME):
        return Scope.REGION
    return Scope.PROVINCE


def process_turnout(rows: Iterable[Row]) -> List[TurnoutRecord]:
    records: List[TurnoutRecord] = []
    for row in rows:
        territory = _text(row, "turnout", "territory")
        if is_blank(territory):
            continue
        records.append(
            TurnoutRecord(
                territory=territory,
                scope=classify_scope(territory),
                time_label=_text(row, "turnout", "time"),
                polling_stations=parse_locale_int(_field(row, "turnout", "stations")),
                electorate=parse_locale_int(_field(row, "turnout", "electorate")),
                turnout=parse_locale_number(_field(row, "turnout", "turnout")),
            )
        )
    return records
