"""Static configuration for the Aragón results feed."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict

_SHEETS_BASE = "https://docs.google.com/spreadsheets/d/e"
_BOOK_SEATS = "2PACX-1vRZMjykDggme0HIzUK4C3zzI795JBg1JxVPXxvpNCK5bK39Q6S9qqKcpPuAbYRXi9pPYADuM-3Q2Qsk"
_BOOK_VOTES = "2PACX-1vRTfSc7iiZ_v6A3p77NS6-ebgfWz_sKcE3pIilAOACBjmHdRI1teGlTlXBR3agtmYZtRpVTP5RcdP17"

SOURCE_URLS: Dict[str, str] = {
    "escanos": f"{_SHEETS_BASE}/{_BOOK_SEATS}/pub?gid=877884979&single=true&output=csv",
    "votos": f"{_SHEETS_BASE}/{_BOOK_VOTES}/pub?gid=1329011177&single=true&output=csv",
    "estado": f"{_SHEETS_BASE}/{_BOOK_SEATS}/pub?gid=1181648817&single=true&output=csv",
    "municipios": f"{_SHEETS_BASE}/{_BOOK_VOTES}/pub?gid=1638668905&single=true&output=csv",
    "participacion": f"{_SHEETS_BASE}/{_BOOK_SEATS}/pub?gid=1075967663&single=true&output=csv",
}

DEFAULT_TIMEOUT = 15
REFRESH_INTERVAL_SECONDS = 5 * 60
USER_AGENT = "AragonResults/1.0"

PREVIOUS_YEAR = 2023
CURRENT_YEAR = 2025
TOTAL_SEATS = 67
MAJORITY_THRESHOLD = 34

REGION_NAME = "Aragón"
PROVINCES = ("Zaragoza", "Huesca", "Teruel")

DEFAULT_PARTY_COLOR = "#94a3b8"
MAP_DEFAULT_COLOR = "#475569"

ASSET_BASE_ENV = "ARAGON_ASSET_BASE"
BOUNDARIES_FILENAME = "mapa_municipios.geojson"


def asset_base() -> Path:
    """Directory holding static assets such as the municipality boundaries."""

    configured = os.environ.get(ASSET_BASE_ENV, "").strip()
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parent.parent / "assets"


def boundaries_path() -> Path:
    return asset_base() / BOUNDARIES_FILENAME
