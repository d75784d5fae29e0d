"""Streamlit dashboard for Aragón election night coverage."""

from __future__ import annotations

import copy
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd
import pydeck as pdk
import streamlit as st

from aragon_results import (
    ResultsPoller,
    Snapshot,
    build_hemicycle,
    turnout_panel,
)
from aragon_results.config import (
    CURRENT_YEAR,
    MAJORITY_THRESHOLD,
    PREVIOUS_YEAR,
    TOTAL_SEATS,
    boundaries_path,
)
from aragon_results.formatting import format_number_es, format_percent_es
from aragon_results.geo import (
    load_boundaries,
    municipality_fill_color,
    municipality_tooltip,
)
from aragon_results.views import hemicycle_dataframe

st.set_page_config(
    page_title="Elecciones Aragón 2025",
    layout="wide",
    page_icon="🗳️",
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

RERENDER_SECONDS = 30
LANGUAGE_OPTIONS = {"Español": "es", "English": "en"}

STRINGS: Dict[str, Dict[str, str]] = {
    "es": {
        "title": "Elecciones a las Cortes de Aragón",
        "subtitle": "Resultados en directo {year}",
        "loading": "Cargando datos…",
        "no_data": "Todavía no hay datos disponibles.",
        "refresh": "Actualizar",
        "refreshing": "Actualizando…",
        "headline_counted": "Escrutado",
        "headline_updated": "Última actualización",
        "headline_fetched": "Datos cargados a las",
        "hemicycle": "Distribución de escaños (total {total})",
        "majority": "Mayoría absoluta: {majority} escaños",
        "seats_table": "Escaños por partido",
        "party": "Partido",
        "change": "Cambio",
        "vote_share": "Porcentaje de voto",
        "map": "Fuerza más votada por municipio",
        "map_missing": "No se encuentra el mapa de municipios.",
        "turnout": "Participación",
        "turnout_waiting": "Sin datos de participación.",
        "electorate": "Censo",
        "stations": "Mesas",
        "download_data": "Descargar datos",
        "download_seats": "Descargar escaños (CSV)",
        "download_votes": "Descargar votos (CSV)",
    },
    "en": {
        "title": "Aragón Parliament Election",
        "subtitle": "Live results {year}",
        "loading": "Loading data…",
        "no_data": "No data available yet.",
        "refresh": "Refresh",
        "refreshing": "Refreshing…",
        "headline_counted": "Counted",
        "headline_updated": "Last update",
        "headline_fetched": "Data loaded at",
        "hemicycle": "Seat distribution (total {total})",
        "majority": "Absolute majority: {majority} seats",
        "seats_table": "Seats by party",
        "party": "Party",
        "change": "Change",
        "vote_share": "Vote share",
        "map": "Leading party by municipality",
        "map_missing": "Municipality map not found.",
        "turnout": "Turnout",
        "turnout_waiting": "No turnout data yet.",
        "electorate": "Electorate",
        "stations": "Polling stations",
        "download_data": "Download data",
        "download_seats": "Download seats (CSV)",
        "download_votes": "Download votes (CSV)",
    },
}


def get_translator(language: str):
    lang = language if language in STRINGS else "es"

    def translate(key: str, fallback: str = "", **kwargs: Any) -> str:
        template = STRINGS.get(lang, {}).get(key)
        if template is None:
            template = STRINGS["es"].get(key, fallback or key)
        return template.format(**kwargs)

    return translate


@st.cache_resource(show_spinner=False)
def get_poller() -> ResultsPoller:
    """One poller per server process, shared by every browser session."""

    poller = ResultsPoller()
    poller.start()
    return poller


@st.cache_data(show_spinner=False)
def load_boundary_features(path: str) -> List[Dict[str, Any]]:
    return load_boundaries(Path(path))


def hex_to_rgba(hex_color: Optional[str], alpha: int = 200) -> List[int]:
    if not hex_color:
        return [120, 120, 120, alpha]
    value = hex_color.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    try:
        r = int(value[0:2], 16)
        g = int(value[2:4], 16)
        b = int(value[4:6], 16)
    except ValueError:
        return [120, 120, 120, alpha]
    return [r, g, b, alpha]


def make_seats_dataframe(snapshot: Snapshot) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "party": party.name,
                f"seats_{CURRENT_YEAR}": party.seats_current,
                f"seats_{PREVIOUS_YEAR}": party.seats_previous,
                "change": party.change,
                "bloc": int(party.bloc) if party.bloc is not None else None,
                "color": party.color,
            }
            for party in snapshot.seats
        ]
    )


def make_votes_dataframe(snapshot: Snapshot) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"party": vote.name, "vote_share": vote.percentage, "color": vote.color}
            for vote in snapshot.votes
        ]
    )


def render_headline_bar(snapshot: Snapshot, poller: ResultsPoller, t) -> None:
    cols = st.columns([2, 3, 2, 1])
    cols[0].metric(
        t("headline_counted"), f"{format_percent_es(snapshot.count_status.counted_percent)}%"
    )
    cols[1].metric(t("headline_updated"), snapshot.count_status.last_update or "–")
    fetched_local = snapshot.fetched_at.astimezone()
    cols[2].metric(t("headline_fetched"), f"{fetched_local:%H:%M:%S}")
    if cols[3].button(t("refresh"), disabled=poller.is_refreshing):
        with st.spinner(t("refreshing")):
            poller.refresh()
        st.rerun()


def render_hemicycle(snapshot: Snapshot, t) -> None:
    st.markdown(f"### {t('hemicycle', total=TOTAL_SEATS)}")
    layout = build_hemicycle(snapshot.seats, TOTAL_SEATS, MAJORITY_THRESHOLD)
    arcs = hemicycle_dataframe(layout)
    if arcs.empty:
        st.info(t("no_data"))
        return

    majority_theta = math.radians(90.0 - layout.majority_angle)
    majority_df = pd.DataFrame(
        [{"theta": majority_theta - 0.006, "theta2": majority_theta + 0.006}]
    )
    seats_layer = (
        alt.Chart(arcs)
        .mark_arc(innerRadius=90, outerRadius=170, stroke="white", strokeWidth=2)
        .encode(
            theta=alt.Theta("theta:Q", scale=None),
            theta2="theta2:Q",
            color=alt.Color(
                "party:N",
                scale=alt.Scale(
                    domain=arcs["party"].tolist(), range=arcs["color"].tolist()
                ),
                legend=alt.Legend(title=""),
            ),
            tooltip=[
                alt.Tooltip("party", title=t("party")),
                alt.Tooltip("seats", title=str(CURRENT_YEAR)),
                alt.Tooltip("seats_previous", title=str(PREVIOUS_YEAR)),
                alt.Tooltip("change", title=t("change")),
            ],
        )
    )
    majority_layer = (
        alt.Chart(majority_df)
        .mark_arc(innerRadius=80, outerRadius=180, color="#0f172a")
        .encode(theta=alt.Theta("theta:Q", scale=None), theta2="theta2:Q")
    )
    st.altair_chart(
        (seats_layer + majority_layer).properties(height=380),
        use_container_width=True,
    )
    st.caption(t("majority", majority=MAJORITY_THRESHOLD))

    st.markdown(f"#### {t('seats_table')}")
    st.dataframe(
        make_seats_dataframe(snapshot).drop(columns=["bloc", "color"]),
        hide_index=True,
        use_container_width=True,
    )


def render_vote_share_section(snapshot: Snapshot, t) -> None:
    st.markdown(f"### {t('vote_share')}")
    votes_df = make_votes_dataframe(snapshot)
    if votes_df.empty:
        st.info(t("no_data"))
        return
    chart = (
        alt.Chart(votes_df)
        .mark_bar(cornerRadiusTopLeft=6, cornerRadiusTopRight=6)
        .encode(
            x=alt.X("party:N", sort=None, title=""),
            y=alt.Y("vote_share:Q", title="%"),
            color=alt.Color(
                "party:N",
                scale=alt.Scale(
                    domain=votes_df["party"].tolist(), range=votes_df["color"].tolist()
                ),
                legend=None,
            ),
            tooltip=[
                alt.Tooltip("party", title=t("party")),
                alt.Tooltip("vote_share", title=t("vote_share"), format=".2f"),
            ],
        )
        .properties(height=320)
    )
    st.altair_chart(chart, use_container_width=True)


def _tooltip_text(meta: Dict[str, Any]) -> str:
    lines = [f"{meta['municipio']} ({meta['provincia']})"]
    for rank, force in enumerate(meta["fuerzas"], start=1):
        if force["nombre"]:
            lines.append(
                f"{rank}. {force['nombre']} {format_percent_es(force['porcentaje'])}%"
            )
    return "\n".join(lines)


def render_municipality_map(snapshot: Snapshot, t) -> None:
    st.markdown(f"### {t('map')}")
    path = boundaries_path()
    if not path.exists():
        st.info(t("map_missing"))
        return
    features = load_boundary_features(str(path))
    if not features:
        st.info(t("map_missing"))
        return

    painted: List[Dict[str, Any]] = []
    for feature in features:
        enriched = copy.copy(feature)
        properties = dict(feature.get("properties") or {})
        properties["fill_rgba"] = hex_to_rgba(
            municipality_fill_color(feature, snapshot.municipalities)
        )
        properties["tooltip"] = _tooltip_text(
            municipality_tooltip(feature, snapshot.municipalities)
        )
        enriched["properties"] = properties
        painted.append(enriched)

    deck = pdk.Deck(
        map_style=None,
        initial_view_state=pdk.ViewState(latitude=41.5, longitude=-0.7, zoom=6.4),
        layers=[
            pdk.Layer(
                "GeoJsonLayer",
                data={"type": "FeatureCollection", "features": painted},
                get_fill_color="properties.fill_rgba",
                get_line_color=[255, 255, 255, 160],
                line_width_min_pixels=0.5,
                pickable=True,
                stroked=True,
                filled=True,
            )
        ],
        tooltip={"text": "{tooltip}"},
    )
    st.pydeck_chart(deck)


def render_turnout_panel(snapshot: Snapshot, t) -> None:
    st.markdown(f"### {t('turnout')}")
    if not snapshot.turnout:
        st.info(t("turnout_waiting"))
        return
    rows = turnout_panel(snapshot.turnout)
    cols = st.columns(len(rows))
    for col, row in zip(cols, rows):
        col.metric(
            row.name,
            f"{format_percent_es(row.turnout)}%",
            delta=f"{row.difference:+.2f} vs {PREVIOUS_YEAR}",
        )
        col.caption(
            f"{t('electorate')}: {format_number_es(row.electorate)} · "
            f"{t('stations')}: {format_number_es(row.polling_stations)}"
        )

    turnout_df = pd.DataFrame(
        [
            {"territorio": row.name, "año": str(CURRENT_YEAR), "participacion": row.turnout}
            for row in rows
        ]
        + [
            {
                "territorio": row.name,
                "año": str(PREVIOUS_YEAR),
                "participacion": row.reference_turnout,
            }
            for row in rows
        ]
    )
    chart = (
        alt.Chart(turnout_df)
        .mark_bar()
        .encode(
            x=alt.X("territorio:N", sort=None, title=""),
            xOffset="año:N",
            y=alt.Y("participacion:Q", title="%"),
            color=alt.Color(
                "año:N",
                scale=alt.Scale(
                    domain=[str(PREVIOUS_YEAR), str(CURRENT_YEAR)],
                    range=["#cbd5e1", "#00d9a0"],
                ),
            ),
            tooltip=["territorio", "año", alt.Tooltip("participacion", format=".2f")],
        )
        .properties(height=260)
    )
    st.altair_chart(chart, use_container_width=True)


def render_downloads(snapshot: Snapshot, t) -> None:
    with st.expander(t("download_data")):
        seats_df = make_seats_dataframe(snapshot)
        if not seats_df.empty:
            st.download_button(
                label=t("download_seats"),
                data=seats_df.to_csv(index=False).encode("utf-8"),
                file_name=f"aragon-escanos-{CURRENT_YEAR}.csv",
                mime="text/csv",
            )
        votes_df = make_votes_dataframe(snapshot)
        if not votes_df.empty:
            st.download_button(
                label=t("download_votes"),
                data=votes_df.to_csv(index=False).encode("utf-8"),
                file_name=f"aragon-votos-{CURRENT_YEAR}.csv",
                mime="text/csv",
            )


@st.fragment(run_every=RERENDER_SECONDS)
def render_results(poller: ResultsPoller, t) -> None:
    snapshot = poller.snapshot
    if snapshot is None:
        if poller.is_loading:
            st.info(t("loading"))
        else:
            st.warning(t("no_data"))
        return

    render_headline_bar(snapshot, poller, t)
    overview_tab, map_tab, turnout_tab = st.tabs(
        [t("hemicycle", total=TOTAL_SEATS), t("map"), t("turnout")]
    )
    with overview_tab:
        render_hemicycle(snapshot, t)
        st.divider()
        render_vote_share_section(snapshot, t)
    with map_tab:
        render_municipality_map(snapshot, t)
    with turnout_tab:
        render_turnout_panel(snapshot, t)
    render_downloads(snapshot, t)


def main() -> None:
    language_choice = st.sidebar.radio(
        "Idioma / Language", list(LANGUAGE_OPTIONS.keys()), index=0
    )
    t = get_translator(LANGUAGE_OPTIONS.get(language_choice, "es"))

    poller = get_poller()
    if not st.session_state.get("session_seen"):
        # A newly opened tab counts as the page becoming visible.
        st.session_state["session_seen"] = True
        if poller.snapshot is not None:
            poller.on_visibility_change(True)

    st.title(t("title"))
    st.subheader(t("subtitle", year=CURRENT_YEAR))
    render_results(poller, t)


if __name__ == "__main__":
    main()
