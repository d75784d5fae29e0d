"""Background polling of the published result sheets.

The poller fetches every sheet concurrently, parses and processes them and
publishes the outcome as a single :class:`~aragon_results.models.Snapshot`.
Each refresh is tagged with a sequence number; a cycle that finishes after a
newer one has started is discarded, so a slow request can never overwrite
fresher data.
"""

from __future__ import annotations

import datetime as dt
import io
import itertools
import logging
import secrets
import threading
import time
import uuid
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from enum import Enum
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import pandas as pd
import requests  # type: ignore[import-not-found]

from .config import DEFAULT_TIMEOUT, REFRESH_INTERVAL_SECONDS, SOURCE_URLS, USER_AGENT
from .models import Snapshot
from .processors import (
    process_count_status,
    process_municipalities,
    process_seats,
    process_turnout,
    process_votes,
)

logger = logging.getLogger(__name__)

SOURCE_NAMES = ("escanos", "votos", "estado", "municipios", "participacion")

Fetcher = Callable[[str], str]
SnapshotCallback = Callable[[Snapshot], None]


class FeedError(RuntimeError):
    """Base class for failures that abort a poll cycle."""


class SheetUnavailable(FeedError):
    """Raised when a sheet cannot be downloaded."""

    def __init__(
        self,
        resource: str,
        status: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        detail = resource
        if status is not None:
            detail += f" (status {status})"
        if reason:
            detail += f" · {reason.strip()}"
        super().__init__(f"Result sheet is unreachable: {detail}")
        self.resource = resource
        self.status = status
        self.reason = reason


class SheetParseError(FeedError):
    """Raised when a downloaded sheet is not valid delimited text."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Could not parse sheet {source!r}: {reason}")
        self.source = source
        self.reason = reason


class RefreshTrigger(str, Enum):
    INITIAL = "initial"
    INTERVAL = "interval"
    VISIBILITY = "visibility"
    FOCUS = "focus"
    MANUAL = "manual"


def build_session() -> requests.Session:
    """Session that identifies itself and never stores or sends cookies."""

    session = requests.Session()
    session.headers.setdefault("User-Agent", USER_AGENT)
    session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
    return session


def cache_busting_url(url: str, now: Optional[float] = None) -> str:
    """Append unique query parameters so no cache can answer the request."""

    timestamp = str(int((now if now is not None else time.time()) * 1000))
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(
        [
            ("_t", timestamp),
            ("_r", secrets.token_hex(6)),
            ("_uuid", str(uuid.uuid4())),
            ("cachebust", timestamp),
        ]
    )
    return urlunsplit(parts._replace(query=urlencode(query)))


def fetch_with_no_cache(
    session: requests.Session, url: str, timeout: float = DEFAULT_TIMEOUT
) -> str:
    try:
        response = session.get(
            cache_busting_url(url),
            headers={"Cache-Control": "no-cache", "Pragma": "no-cache"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise SheetUnavailable(url, reason=str(exc)) from exc
    if not response.ok:
        raise SheetUnavailable(url, response.status_code, response.reason)
    response.encoding = "utf-8"
    return response.text


def parse_csv(text: str, source: str = "csv") -> List[Dict[str, str]]:
    """Parse CSV text with a header row into a list of string-valued rows."""

    if not text.strip():
        return []
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, ValueError) as exc:
        raise SheetParseError(source, str(exc)) from exc
    return frame.to_dict(orient="records")


class ResultsPoller:
    """Keeps the current :class:`Snapshot` up to date.

    ``refresh`` is the only way a snapshot gets published; the interval
    timer and the visibility/focus hooks all go through it.
    """

    def __init__(
        self,
        sources: Optional[Mapping[str, str]] = None,
        *,
        session: Optional[requests.Session] = None,
        fetcher: Optional[Fetcher] = None,
        interval: float = REFRESH_INTERVAL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT,
        on_snapshot: Optional[SnapshotCallback] = None,
    ) -> None:
        self.sources: Dict[str, str] = dict(sources or SOURCE_URLS)
        missing = [name for name in SOURCE_NAMES if name not in self.sources]
        if missing:
            raise ValueError(f"Missing source URLs: {', '.join(missing)}")
        self.interval = interval
        self.timeout = timeout
        self.session = session or build_session()
        self._fetcher: Fetcher = fetcher or (
            lambda url: fetch_with_no_cache(self.session, url, self.timeout)
        )
        self._on_snapshot = on_snapshot

        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._latest_load_id = 0
        self._snapshot: Optional[Snapshot] = None
        self._in_flight = False

        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._listening = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def latest_load_id(self) -> int:
        return self._latest_load_id

    @property
    def is_loading(self) -> bool:
        return self._in_flight and self._snapshot is None

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight and self._snapshot is not None

    def _is_stale(self, load_id: int) -> bool:
        with self._lock:
            return load_id != self._latest_load_id

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    def _gather(
        self,
        executor: ThreadPoolExecutor,
        func: Callable[[str, Any], Any],
        items: Mapping[str, Any],
    ) -> Dict[str, Any]:
        futures: Dict[str, Future] = {
            name: executor.submit(func, name, value) for name, value in items.items()
        }
        done, _ = wait(futures.values(), return_when=FIRST_EXCEPTION)
        for future in done:
            exc = future.exception()
            if exc is not None:
                raise exc
        return {name: future.result() for name, future in futures.items()}

    def _fetch_source(self, name: str, url: str) -> str:
        logger.debug("Fetching sheet %s", name)
        return self._fetcher(url)

    def _build_snapshot(self, load_id: int, tables: Mapping[str, Any]) -> Snapshot:
        return Snapshot(
            seats=tuple(process_seats(tables["escanos"])),
            votes=tuple(process_votes(tables["votos"])),
            count_status=process_count_status(tables["estado"]),
            municipalities=process_municipalities(tables["municipios"]),
            turnout=tuple(process_turnout(tables["participacion"])),
            load_id=load_id,
            fetched_at=dt.datetime.now(dt.timezone.utc),
        )

    def refresh(self, trigger: RefreshTrigger = RefreshTrigger.MANUAL) -> bool:
        """Run one poll cycle; return ``True`` if it published a snapshot.

        Download and parse failures are logged and leave the current
        snapshot untouched.
        """

        with self._lock:
            load_id = next(self._sequence)
            self._latest_load_id = load_id
            self._in_flight = True
        logger.info("Poll cycle %d started (%s)", load_id, trigger.value)

        executor = ThreadPoolExecutor(
            max_workers=len(self.sources), thread_name_prefix=f"sheets-{load_id}"
        )
        try:
            texts = self._gather(executor, self._fetch_source, self.sources)
            if self._is_stale(load_id):
                logger.debug("Poll cycle %d superseded after download", load_id)
                return False

            tables = self._gather(
                executor, lambda name, text: parse_csv(text, source=name), texts
            )
            if self._is_stale(load_id):
                logger.debug("Poll cycle %d superseded after parsing", load_id)
                return False

            snapshot = self._build_snapshot(load_id, tables)
            with self._lock:
                if load_id != self._latest_load_id:
                    logger.debug("Poll cycle %d superseded before commit", load_id)
                    return False
                self._snapshot = snapshot
        except FeedError:
            logger.exception("Error loading results in poll cycle %d", load_id)
            return False
        finally:
            executor.shutdown(wait=False)
            with self._lock:
                if load_id == self._latest_load_id:
                    self._in_flight = False

        logger.info(
            "Poll cycle %d published %d parties, %d municipalities",
            load_id,
            len(snapshot.seats),
            len(snapshot.municipalities),
        )
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)
        return True

    # ------------------------------------------------------------------
    # Triggers and lifecycle
    # ------------------------------------------------------------------

    def on_visibility_change(self, visible: bool) -> bool:
        if not self._listening or not visible:
            return False
        return self.refresh(RefreshTrigger.VISIBILITY)

    def on_focus(self) -> bool:
        if not self._listening:
            return False
        return self.refresh(RefreshTrigger.FOCUS)

    def _run_timer(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.refresh(RefreshTrigger.INTERVAL)
            except Exception:  # noqa: BLE001 - keep the timer alive
                logger.exception("Scheduled refresh failed")

    def start(self, initial_load: bool = True) -> None:
        """Load once and then refresh every ``interval`` seconds."""

        if self._timer_thread is not None:
            return
        self._stop_event.clear()
        self._listening = True
        self._timer_thread = threading.Thread(
            target=self._run_timer, name="results-poller", daemon=True
        )
        self._timer_thread.start()
        if initial_load:
            self.refresh(RefreshTrigger.INITIAL)

    def stop(self) -> None:
        self._listening = False
        self._stop_event.set()
        thread, self._timer_thread = self._timer_thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.timeout + 1)

    def __enter__(self) -> "ResultsPoller":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
