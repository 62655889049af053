"""Overlay data fetcher — retrieves the point dataset behind the CSV overlay.

One fetch attempt is made per activation. The status guard makes
``activate`` re-entrant safe: calls while a fetch is in flight, or after it
has loaded, are no-ops, so concurrent triggers collapse to one request.

Teardown of the owning map session calls ``reset()``, which bumps the fetch
epoch. A completion that started under an older epoch is discarded without
touching status or data.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import httpx
from loguru import logger

from mapengine.comms.event_bus import EventBus
from mapengine.layers.layer import FeatureCollection
from mapengine.layers.parsers.csv_import import MissingColumnError, parse_csv

FETCH_STATUS = "fetch.status"

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}


class FetchState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERRORED = "errored"


@dataclass(frozen=True)
class FetchStatus:
    """Fetch state plus its payload (feature count or error message)."""

    state: FetchState = FetchState.IDLE
    feature_count: int = 0
    error: str = ""
    url: str = ""

    @property
    def loading(self) -> bool:
        return self.state == FetchState.LOADING

    @property
    def loaded(self) -> bool:
        return self.state == FetchState.LOADED

    def status_text(self) -> str:
        """One-line status shown next to the CSV overlay selector."""
        text = f"CSV: {self.url}" if self.url else "CSV"
        if self.state == FetchState.LOADING:
            return f"{text} (loading…)"
        if self.state == FetchState.LOADED:
            return f"{text} ({self.feature_count:,} points)"
        if self.state == FetchState.ERRORED:
            return f"{text}: {self.error}"
        return text

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "loading": self.loading,
            "loaded": self.loaded,
            "feature_count": self.feature_count,
            "error": self.error,
            "url": self.url,
        }


IDLE_STATUS = FetchStatus()


class FetchError(RuntimeError):
    """Raised when the dataset cannot be retrieved (non-success response)."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"Failed to load CSV ({status_code}): {url}")


DataHandler = Callable[[FeatureCollection], None]


class OverlayDataFetcher:
    """Owns the CSV overlay's fetch status and ingested features."""

    def __init__(
        self,
        bus: EventBus,
        on_data: Optional[DataHandler] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._bus = bus
        self._on_data = on_data
        self._transport = transport
        self._timeout = timeout
        self._status = IDLE_STATUS
        self._collection: FeatureCollection | None = None
        self._epoch = 0
        self.request_count = 0

    @property
    def status(self) -> FetchStatus:
        return self._status

    @property
    def collection(self) -> FeatureCollection | None:
        """Features from the last successful fetch in this epoch, if any."""
        return self._collection

    @property
    def epoch(self) -> int:
        return self._epoch

    def set_data_handler(self, handler: Optional[DataHandler]) -> None:
        self._on_data = handler

    def reset(self) -> None:
        """Forget status and data; in-flight completions become stale."""
        self._epoch += 1
        self._collection = None
        if self._status != IDLE_STATUS:
            self._set_status(IDLE_STATUS)

    async def activate(self, url: str, epoch: Optional[int] = None) -> FetchStatus:
        """Fetch and ingest the dataset at ``url`` unless already loading/loaded.

        ``epoch`` is the fetch epoch the caller observed when scheduling the
        activation; a task that only starts after a ``reset()`` does nothing.
        """
        if epoch is None:
            epoch = self._epoch
        elif epoch != self._epoch:
            logger.debug(f"Skipping CSV activation scheduled in stale epoch {epoch}")
            return self._status

        if self._status.state in (FetchState.LOADING, FetchState.LOADED):
            logger.debug(f"CSV fetch already {self._status.state.value}; ignoring activate")
            return self._status

        self._set_status(FetchStatus(FetchState.LOADING, url=url))
        logger.info(f"Loading CSV overlay from {url}")

        try:
            text = await self._retrieve(url)
            collection = parse_csv(text)
        except (
            FetchError,
            MissingColumnError,
            httpx.HTTPError,
            httpx.InvalidURL,
            OSError,
        ) as e:
            if epoch != self._epoch:
                logger.debug(f"Discarding stale CSV failure from epoch {epoch}")
                return self._status
            logger.warning(f"CSV overlay failed: {e}")
            self._set_status(FetchStatus(FetchState.ERRORED, error=str(e), url=url))
            return self._status

        if epoch != self._epoch:
            logger.debug(f"Discarding stale CSV result from epoch {epoch}")
            return self._status

        self._collection = collection
        self._set_status(
            FetchStatus(FetchState.LOADED, feature_count=len(collection), url=url)
        )
        logger.info(f"CSV overlay loaded: {len(collection)} points")
        if self._on_data is not None:
            self._on_data(collection)
        return self._status

    async def _retrieve(self, url: str) -> str:
        """Read the dataset over HTTP(S), or from disk for plain paths."""
        self.request_count += 1
        if url.startswith(("http://", "https://")):
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                headers=_NO_CACHE_HEADERS,
            ) as client:
                resp = await client.get(url)
            if not resp.is_success:
                raise FetchError(resp.status_code, url)
            return resp.content.decode("utf-8", errors="replace")

        path = Path(url.removeprefix("file://")).expanduser()
        if not path.is_file():
            raise FetchError(404, url)
        return await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")

    def _set_status(self, status: FetchStatus) -> None:
        self._status = status
        self._bus.publish(FETCH_STATUS, status.to_dict())
