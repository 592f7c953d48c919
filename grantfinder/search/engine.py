"""
Grant search entry point.

Wires the filter model, query compiler, relevance scorer and result
assembler to injected record and preference stores:

    filter → normalize → compile → store (count + fetch) → rank → envelope

Store clients are synchronous (sqlite3 / psycopg2); each call runs in a
worker thread so the event loop is never blocked. The count and page
queries run concurrently; if either fails, or the caller cancels, the
sibling call is cancelled too.
"""

import asyncio
import logging
from datetime import date
from functools import partial
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from grantfinder.config import GRANTS_PER_PAGE, RELEVANCE_CANDIDATE_LIMIT
from grantfinder.core.domain_models import UserPreferences
from grantfinder.core.exceptions import FetchError, GrantFinderError, InvalidFilterError
from grantfinder.core.time_utils import today_utc
from grantfinder.search.filters import FilterSpec, NormalizedFilter, SortKey, normalize_filter
from grantfinder.search.query_compiler import ID_ORDER, CompiledQuery, compile_filter
from grantfinder.search.relevance import RelevanceScorer, SearchHit
from grantfinder.search.results import ResultEnvelope, assemble_results
from grantfinder.storage.preference_store import DEFAULT_FUNDING_MAX, default_preferences


logger = logging.getLogger(__name__)

FilterInput = Union[FilterSpec, NormalizedFilter, Mapping[str, Any]]


class GrantSearchEngine:
    """
    Filtered, paginated and optionally relevance-ranked grant search.

    Usage:
        engine = GrantSearchEngine(GrantStore("grants.db"), PreferenceStore("grants.db"))
        page = await engine.search(FilterSpec(search_term="water", page=2))
        picks = await engine.recommend("user-1", limit=5)
    """

    def __init__(
        self,
        record_store,
        preference_store=None,
        page_size: int = GRANTS_PER_PAGE,
        candidate_limit: int = RELEVANCE_CANDIDATE_LIMIT,
        scorer: Callable[[date], RelevanceScorer] = RelevanceScorer,
        clock: Callable[[], date] = today_utc,
    ):
        """
        Args:
            record_store: Object with count(predicates) and
                fetch(predicates, sort, offset, limit)
            preference_store: Object with get_preferences(user_id); when
                omitted every user ranks with default preferences
            page_size: Records per page
            candidate_limit: Maximum records ranked for relevance sort
            scorer: Builds the relevance scorer for a reference date
            clock: Returns today's date (deadline offsets are relative to it)
        """
        if page_size < 1:
            raise InvalidFilterError(f"page_size must be >= 1, got {page_size}")
        if candidate_limit < 1:
            raise InvalidFilterError(f"candidate_limit must be >= 1, got {candidate_limit}")

        self.record_store = record_store
        self.preference_store = preference_store
        self.page_size = page_size
        self.candidate_limit = candidate_limit
        self.scorer = scorer
        self.clock = clock

    async def search(self, spec: FilterInput, user_id: Optional[str] = None) -> ResultEnvelope:
        """
        Run a search and return one page of results.

        Args:
            spec: FilterSpec, NormalizedFilter or raw query-parameter mapping
            user_id: Whose preferences drive relevance sort (None = anonymous)

        Returns:
            ResultEnvelope; zero matches yields an empty page, not an error

        Raises:
            InvalidFilterError / UnsupportedFilterError: Malformed filter
            FetchError: Record or preference store failure
        """
        nf = self._normalize(spec)
        today = self.clock()
        query = compile_filter(nf, self.page_size, today)

        if query.rank_by_relevance:
            return await self._search_by_relevance(nf, query, user_id, today)

        total, grants = await self._gather(
            partial(self.record_store.count, query.predicates),
            partial(self.record_store.fetch, query.predicates, query.sort, query.offset, query.limit),
        )

        logger.info(f"Search page {nf.page}: {len(grants)} of {total} grants (sort={nf.sort_by.value})")
        return assemble_results([SearchHit(grant) for grant in grants], total, nf.page, self.page_size)

    async def recommend(
        self,
        user_id: Optional[str],
        limit: int = 10,
        exclude_ids: Iterable[str] = (),
    ) -> List[SearchHit]:
        """
        Recommend open grants that match a user's stored preferences.

        Candidates matching the preferred categories, agencies and funding
        band (unknown funding and rolling deadlines allowed; a band
        reaching DEFAULT_FUNDING_MAX has no upper bound) are fetched at
        twice the limit and ranked. When none match, a relaxed query over
        all open grants is ranked instead, at three times the limit.

        Args:
            user_id: User whose preferences to use
            limit: Maximum recommendations
            exclude_ids: Grants the user already interacted with

        Returns:
            Ranked hits, best first
        """
        if limit < 1:
            raise InvalidFilterError(f"limit must be >= 1, got {limit}")

        exclude_ids = tuple(exclude_ids)
        today = self.clock()
        (prefs,) = await self._gather(partial(self._get_preferences, user_id))

        preferred = normalize_filter(FilterSpec(
            activity_categories=prefs.preferred_categories,
            agencies=prefs.preferred_agencies,
            funding_min=max(0, prefs.funding_min or 0),
            # the top of the default band means "any amount"
            funding_max=prefs.funding_max if prefs.funding_max < DEFAULT_FUNDING_MAX else None,
            include_funding_null=True,
            include_no_deadline=True,
            exclude_ids=exclude_ids,
            sort_by=SortKey.RELEVANCE,
        ))
        candidates = await self._fetch_candidates(preferred, today, limit * 2)

        if not candidates:
            logger.info(f"No preference matches for user {user_id}, using relaxed recommendations")
            relaxed = normalize_filter(FilterSpec(exclude_ids=exclude_ids, sort_by=SortKey.RELEVANCE))
            candidates = await self._fetch_candidates(relaxed, today, limit * 3)

        return self.scorer(today).rank(candidates, prefs)[:limit]

    async def _search_by_relevance(
        self,
        nf: NormalizedFilter,
        query: CompiledQuery,
        user_id: Optional[str],
        today: date,
    ) -> ResultEnvelope:
        # Rank a fixed candidate window so every page slices the same ordering
        total, candidates, prefs = await self._gather(
            partial(self.record_store.count, query.predicates),
            partial(self.record_store.fetch, query.predicates, query.sort, 0, self.candidate_limit),
            partial(self._get_preferences, user_id),
        )

        ranked = self.scorer(today).rank(candidates, prefs)
        window = ranked[query.offset:query.offset + query.limit]
        rankable = min(total, self.candidate_limit)

        if total > self.candidate_limit:
            logger.info(f"Relevance ranking capped at {self.candidate_limit} of {total} matches")

        return assemble_results(window, rankable, nf.page, self.page_size)

    async def _fetch_candidates(self, nf: NormalizedFilter, today: date, limit: int):
        query = compile_filter(nf, limit, today)
        (grants,) = await self._gather(
            partial(self.record_store.fetch, query.predicates, (ID_ORDER,), 0, limit)
        )
        return grants

    def _get_preferences(self, user_id: Optional[str]) -> UserPreferences:
        if self.preference_store is None or not user_id:
            return default_preferences()
        return self.preference_store.get_preferences(user_id)

    def _normalize(self, spec: FilterInput) -> NormalizedFilter:
        if isinstance(spec, NormalizedFilter):
            return spec
        if isinstance(spec, Mapping):
            spec = FilterSpec.from_params(spec)
        if not isinstance(spec, FilterSpec):
            raise InvalidFilterError(f"Expected a FilterSpec, got {type(spec).__name__}")
        return normalize_filter(spec)

    async def _gather(self, *calls: Callable[[], Any]) -> List[Any]:
        """
        Run blocking store calls concurrently in worker threads.

        Store exceptions are raised as FetchError; engine errors pass
        through unchanged. Pending calls are cancelled on failure.
        """
        tasks = [asyncio.ensure_future(asyncio.to_thread(call)) for call in calls]
        try:
            return list(await asyncio.gather(*tasks))
        except asyncio.CancelledError:
            _cancel(tasks)
            raise
        except GrantFinderError:
            await _cancel_and_wait(tasks)
            raise
        except Exception as e:
            await _cancel_and_wait(tasks)
            logger.error(f"Record store call failed: {e}")
            raise FetchError(f"Record store call failed: {e}") from e


def _cancel(tasks) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()


async def _cancel_and_wait(tasks) -> None:
    _cancel(tasks)
    await asyncio.gather(*tasks, return_exceptions=True)
