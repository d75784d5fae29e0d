"""Join municipality boundary features with the leading-party index."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import MAP_DEFAULT_COLOR
from .models import MunicipalityEntry, MunicipalityIndex
from .parsing import pick

logger = logging.getLogger(__name__)

PARTY_MAP_COLORS: Dict[str, str] = {
    "PSOE": "#dc2626",
    "PP": "#2563eb",
    "VOX": "#16a34a",
    "PAR": "#eab308",
    "CHA": "#059669",
    "PODEMOS-IU": "#a855f7",
    "PODEMOS": "#a855f7",
    "CS": "#f97316",
    "TERUEL EXISTE": "#ec4899",
    "IU": "#b91c1c",
}

FEATURE_NAME_KEYS = ("municipio_nombre", "nombre_municipio", "MUNICIPIO", "municipio")
FEATURE_PROVINCE_KEYS = ("PROVINCIA", "provincia")
FEATURE_LEADER_KEYS = ("siglas_1", "SIGLAS_1")


def _properties(feature: Mapping[str, Any]) -> Mapping[str, Any]:
    props = feature.get("properties")
    return props if isinstance(props, Mapping) else {}


def feature_location(properties: Mapping[str, Any]) -> Tuple[str, str]:
    """Return the ``(municipality, province)`` names carried by a feature."""

    name = str(pick(properties, FEATURE_NAME_KEYS)).strip()
    province = str(pick(properties, FEATURE_PROVINCE_KEYS)).strip()
    return name, province


def lookup_feature(
    feature: Mapping[str, Any], index: Optional[MunicipalityIndex]
) -> Optional[MunicipalityEntry]:
    name, province = feature_location(_properties(feature))
    if not index or not name or not province:
        return None
    return index.lookup(name, province)


def municipality_fill_color(
    feature: Mapping[str, Any], index: Optional[MunicipalityIndex]
) -> str:
    entry = lookup_feature(feature, index)
    if entry is not None and entry.leading_party in PARTY_MAP_COLORS:
        return PARTY_MAP_COLORS[entry.leading_party]
    fallback = str(pick(_properties(feature), FEATURE_LEADER_KEYS))
    return PARTY_MAP_COLORS.get(fallback, MAP_DEFAULT_COLOR)


def municipality_tooltip(
    feature: Mapping[str, Any], index: Optional[MunicipalityIndex]
) -> Dict[str, Any]:
    name, province = feature_location(_properties(feature))
    entry = lookup_feature(feature, index)
    forces = []
    for rank in (1, 2, 3):
        siglas, percent = entry.force(rank) if entry is not None else ("", "")
        forces.append({"nombre": siglas, "porcentaje": percent})
    return {"municipio": name, "provincia": province, "fuerzas": forces}


def load_boundaries(path: Path) -> List[Dict[str, Any]]:
    """Read the features of a GeoJSON FeatureCollection."""

    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    features = payload.get("features") if isinstance(payload, dict) else None
    if not isinstance(features, list):
        logger.warning("Boundary file %s has no feature list", path)
        return []
    return features
