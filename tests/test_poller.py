import threading
import time
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
import responses

from aragon_results.models import Bloc, Scope
from aragon_results.poller import (
    RefreshTrigger,
    ResultsPoller,
    SheetParseError,
    SheetUnavailable,
    build_session,
    cache_busting_url,
    fetch_with_no_cache,
    parse_csv,
)


def _static_fetcher(body_for_url):
    return lambda url: body_for_url[url]


def test_cache_busting_url_keeps_query_and_adds_unique_params():
    url = "https://docs.example/pub?gid=877884979&single=true&output=csv"

    first = cache_busting_url(url, now=1_700_000_000.0)
    second = cache_busting_url(url, now=1_700_000_000.0)

    query = parse_qs(urlsplit(first).query)
    assert query["gid"] == ["877884979"]
    assert query["output"] == ["csv"]
    assert query["_t"] == ["1700000000000"]
    assert query["cachebust"] == ["1700000000000"]
    assert query["_r"] and query["_uuid"]
    assert first != second


@responses.activate
def test_fetch_with_no_cache_sends_cache_busting_request():
    url = "https://sheets.example/escanos.csv"
    responses.add(responses.GET, url, body="Partido,2023,2025\nPSOE,23,18\n", status=200)

    text = fetch_with_no_cache(build_session(), url)

    assert text.startswith("Partido")
    request = responses.calls[0].request
    assert "_uuid=" in request.url
    assert "cachebust=" in request.url
    assert request.headers["Cache-Control"] == "no-cache"
    assert "Cookie" not in request.headers


@responses.activate
def test_fetch_with_no_cache_rejects_error_status():
    url = "https://sheets.example/votos.csv"
    responses.add(responses.GET, url, status=503)

    with pytest.raises(SheetUnavailable) as excinfo:
        fetch_with_no_cache(build_session(), url)

    assert excinfo.value.status == 503


@responses.activate
def test_fetch_with_no_cache_wraps_transport_errors():
    url = "https://sheets.example/estado.csv"
    responses.add(responses.GET, url, body=requests.ConnectionError("reset"))

    with pytest.raises(SheetUnavailable):
        fetch_with_no_cache(build_session(), url)


@responses.activate
def test_session_discards_response_cookies():
    url = "https://sheets.example/municipios.csv"
    responses.add(
        responses.GET,
        url,
        body="municipio_nombre,PROVINCIA\nJaca,Huesca\n",
        headers={"Set-Cookie": "tracking=1; Path=/"},
    )
    session = build_session()

    fetch_with_no_cache(session, url)

    assert len(session.cookies) == 0


def test_parse_csv_reads_every_cell_as_text():
    rows = parse_csv('Partido,2023,2025,color\nPSOE,23,18,dc2626\n\nNA,0,,\n')

    assert rows == [
        {"Partido": "PSOE", "2023": "23", "2025": "18", "color": "dc2626"},
        {"Partido": "NA", "2023": "0", "2025": "", "color": ""},
    ]


def test_parse_csv_empty_text():
    assert parse_csv("") == []
    assert parse_csv("Partido,2023\n") == []


def test_parse_csv_malformed_text():
    with pytest.raises(SheetParseError) as excinfo:
        parse_csv("a,b\n1,2\n3,4,5,6\n", source="votos")
    assert excinfo.value.source == "votos"


def test_poller_requires_every_source(source_urls):
    del source_urls["municipios"]
    with pytest.raises(ValueError):
        ResultsPoller(source_urls, fetcher=lambda url: "")


@responses.activate
def test_refresh_publishes_complete_snapshot(source_urls, body_for_url):
    for url, body in body_for_url.items():
        responses.add(responses.GET, url, body=body, status=200)
    published = []
    poller = ResultsPoller(source_urls, on_snapshot=published.append)

    assert poller.refresh(RefreshTrigger.INITIAL) is True

    snapshot = poller.snapshot
    assert published == [snapshot]
    assert snapshot.load_id == 1
    assert [p.name for p in snapshot.seats] == ["PP", "PSOE", "VOX", "CHA", "PAR"]
    assert snapshot.seats[1].bloc is Bloc.LEFT
    assert snapshot.seats[0].color == "#2563eb"
    assert [v.name for v in snapshot.votes] == ["PP", "PSOE", "VOX"]
    assert snapshot.count_status.counted_percent == 87.5
    assert snapshot.count_status.last_update == "15 de junio de 2026 a las 20:30"
    assert snapshot.municipalities.lookup("ALCANIZ", "teruel").leading_party == "PSOE"
    assert len(snapshot.municipalities) == 2
    assert [r.territory for r in snapshot.turnout] == ["Aragón", "Zaragoza", "Huesca", "Teruel"]
    assert snapshot.turnout[0].scope is Scope.REGION
    assert snapshot.turnout[0].electorate == 1010000
    assert snapshot.fetched_at.tzinfo is not None
    assert len(responses.calls) == 5
    assert not poller.is_loading
    assert not poller.is_refreshing


def test_failed_fetch_keeps_previous_snapshot(source_urls, body_for_url, caplog):
    state = {"fail": False}

    def fetcher(url):
        if state["fail"] and url == source_urls["estado"]:
            raise SheetUnavailable(url, 500)
        return body_for_url[url]

    poller = ResultsPoller(source_urls, fetcher=fetcher)
    assert poller.refresh() is True
    previous = poller.snapshot

    state["fail"] = True
    assert poller.refresh() is False

    assert poller.snapshot is previous
    assert poller.latest_load_id == 2
    assert not poller.is_refreshing
    assert "Error loading results" in caplog.text


def test_parse_failure_keeps_previous_snapshot(source_urls, body_for_url):
    bodies = dict(body_for_url)
    poller = ResultsPoller(source_urls, fetcher=lambda url: bodies[url])
    assert poller.refresh() is True
    previous = poller.snapshot

    bodies[source_urls["votos"]] = "a,b\n1,2\n3,4,5,6\n"
    assert poller.refresh() is False
    assert poller.snapshot is previous


def test_older_cycle_finishing_late_is_discarded(source_urls, body_for_url):
    old_seats = "Partido,2023,2025,lado,color\nOLD,1,1,1,000000\n"
    lock = threading.Lock()
    calls = []
    first_cycle_waiting = threading.Event()
    release_first_cycle = threading.Event()

    def fetcher(url):
        with lock:
            calls.append(url)
            position = len(calls)
        if position <= 5:
            if position == 5:
                first_cycle_waiting.set()
            release_first_cycle.wait(timeout=5)
            if url == source_urls["escanos"]:
                return old_seats
        return body_for_url[url]

    poller = ResultsPoller(source_urls, fetcher=fetcher)
    outcome = {}
    cycle_a = threading.Thread(target=lambda: outcome.setdefault("a", poller.refresh()))
    cycle_a.start()
    assert first_cycle_waiting.wait(timeout=5)

    assert poller.refresh(RefreshTrigger.FOCUS) is True
    newest = poller.snapshot
    assert newest.load_id == 2

    release_first_cycle.set()
    cycle_a.join(timeout=5)

    assert outcome["a"] is False
    assert poller.snapshot is newest
    assert "OLD" not in [p.name for p in poller.snapshot.seats]


def test_triggers_are_ignored_until_started(source_urls, body_for_url):
    poller = ResultsPoller(source_urls, fetcher=_static_fetcher(body_for_url))

    assert poller.on_focus() is False
    assert poller.on_visibility_change(True) is False
    assert poller.snapshot is None


def test_visibility_and_focus_share_refresh(source_urls, body_for_url):
    poller = ResultsPoller(source_urls, fetcher=_static_fetcher(body_for_url), interval=3600)
    with poller:
        assert poller.snapshot.load_id == 1
        assert poller.on_visibility_change(False) is False
        assert poller.on_visibility_change(True) is True
        assert poller.on_focus() is True
        assert poller.snapshot.load_id == 3

    assert poller.on_focus() is False
    assert poller.snapshot.load_id == 3


def test_interval_timer_refreshes_until_stopped(source_urls, body_for_url):
    published = []
    two_cycles = threading.Event()

    def record(snapshot):
        published.append(snapshot)
        if len(published) >= 2:
            two_cycles.set()

    poller = ResultsPoller(
        source_urls,
        fetcher=_static_fetcher(body_for_url),
        interval=0.05,
        on_snapshot=record,
    )
    poller.start(initial_load=False)
    try:
        assert two_cycles.wait(timeout=5)
    finally:
        poller.stop()

    count = len(published)
    time.sleep(0.2)
    assert len(published) == count
    ids = [snapshot.load_id for snapshot in published]
    assert ids == sorted(ids)
