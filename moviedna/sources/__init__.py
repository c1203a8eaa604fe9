"""
MovieDNA - Source Client Contracts

The engine only talks to external data through these three protocols.
Implementations return structured records or raise a ``SourceError``;
anything else they raise is treated as ``SourceUnavailable`` by the caller.

Design patterns:
  - Adapter: each provider client adapts its wire format to these records
  - Repository: engine code never sees HTTP
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, List, Optional, Protocol, TypeVar, runtime_checkable

from moviedna.errors import SourceError, SourceTimeout, SourceUnavailable
from moviedna.models import (
    CatalogDetail,
    CatalogFilter,
    CatalogPage,
    CommunityRecord,
    StreamingOffer,
)

T = TypeVar("T")


@runtime_checkable
class CatalogSource(Protocol):
    """Movie catalog: discovery queries plus full detail records."""

    name: str

    async def query(self, filter: CatalogFilter) -> CatalogPage: ...

    async def details(self, movie_id: int) -> CatalogDetail: ...


@runtime_checkable
class CommunityRatingSource(Protocol):
    """Community ratings (0-5), watch counts, cult flag and theme tags."""

    name: str

    async def lookup(self, title: str, year: Optional[int] = None) -> Optional[CommunityRecord]: ...


@runtime_checkable
class StreamingSource(Protocol):
    """Where a movie can be watched in a given country."""

    name: str

    async def availability(self, movie_id: int, country: str) -> List[StreamingOffer]: ...


# ── Deadline helper ───────────────────────────────────────


async def call_source(source: str, awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """
    Await a source call under a deadline (seconds) and normalise failures
    to the ``SourceError`` family. A call that misses its deadline is
    cancelled and its late result, if any, is dropped.
    """
    try:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise SourceTimeout(source, f"no answer within {timeout:.2f}s") from exc
    except SourceError:
        raise
    except Exception as exc:
        raise SourceUnavailable(source, repr(exc)) from exc


__all__ = [
    "CatalogSource",
    "CommunityRatingSource",
    "StreamingSource",
    "call_source",
]
