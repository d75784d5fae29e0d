"""Live results feed for the Aragón regional election."""

from .models import (
    Bloc,
    CountStatus,
    MunicipalityEntry,
    MunicipalityIndex,
    PartySeatResult,
    PartyVoteShare,
    Scope,
    Snapshot,
    TurnoutRecord,
)
from .parsing import (
    municipality_key,
    normalize_text,
    parse_locale_int,
    parse_locale_number,
)
from .poller import (
    FeedError,
    RefreshTrigger,
    ResultsPoller,
    SheetParseError,
    SheetUnavailable,
)
from .views import build_hemicycle, turnout_panel

__all__ = [
    "Bloc",
    "CountStatus",
    "FeedError",
    "MunicipalityEntry",
    "MunicipalityIndex",
    "PartySeatResult",
    "PartyVoteShare",
    "RefreshTrigger",
    "ResultsPoller",
    "Scope",
    "SheetParseError",
    "SheetUnavailable",
    "Snapshot",
    "TurnoutRecord",
    "build_hemicycle",
    "municipality_key",
    "normalize_text",
    "parse_locale_int",
    "parse_locale_number",
    "turnout_panel",
]
