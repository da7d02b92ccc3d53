"""
Catalog service: the operations the UI calls.

Read path:
    search()        fuzzy model-name search over a cached SearchIndex
    sample()        random discovery grid
    get_record(), list_all(), list_by_tier(), stats()

Write path (requires an AuthenticatedCaller):
    commit_import()                 CSV -> full catalog replace
    update_presentation_content()   patch one record's card markup

preview_import() is read-only and open to anyone who can reach it; the UI
only shows it after login.

Search index caching:
    The index is built from ONE find_all() snapshot and swapped in whole, so a
    search sees either the pre-import or the post-import catalog. It is
    dropped after every successful write and rebuilt when older than the
    configured TTL (another process may have imported meanwhile).
"""

import hmac
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from catalog_store import CatalogStore
from errors import IngestionFailed, InvalidInput, NotFound, ReadError, Unauthorized
from ingest import Source, ingest_file, is_valid_batch
from log_setup import get_logger
from records import CatalogRecord
from sampling import DEFAULT_SAMPLE_SIZE, SampleResult, sample_catalog
from search_index import DEFAULT_LIMIT, SearchIndex
from settings import DEFAULT_SEARCH_INDEX_TTL, Settings

logger = get_logger(__name__)

PREVIEW_LIMIT = 20           # records shown before committing an import
INSERTED_PREVIEW_LIMIT = 10  # records echoed back after committing


class AuthenticatedCaller:
    """
    Proof that the caller logged in. Only CatalogService.authenticate() makes one.
    """
    __slots__ = ('username',)

    def __init__(self, username: str, _token: object = None):
        if _token is not _CALLER_TOKEN:
            raise Unauthorized("AuthenticatedCaller must come from authenticate()")
        self.username = username

    def __repr__(self):
        return f"<AuthenticatedCaller(username='{self.username}')>"


_CALLER_TOKEN = object()


@dataclass
class ImportPreview:
    records: List[CatalogRecord]
    total_count: int
    counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'data': [record.to_dict() for record in self.records],
            'total': self.total_count,
            **self.counts,
        }


@dataclass
class ImportSummary:
    total_processed: int
    total_inserted: int
    duplicates_skipped: int
    inserted_preview: List[CatalogRecord]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'message': 'CSV processed successfully',
            'data': {
                'total_processed': self.total_processed,
                'total_inserted': self.total_inserted,
                'duplicates_skipped': self.duplicates_skipped,
                'records': [record.to_dict() for record in self.inserted_preview],
            },
        }


class CatalogService:
    def __init__(
        self,
        store: CatalogStore,
        index_ttl_seconds: float = DEFAULT_SEARCH_INDEX_TTL,
        admin_username: str = 'admin',
        admin_password: Optional[str] = None,
    ):
        self.store = store
        self.index_ttl_seconds = index_ttl_seconds
        self._admin_username = admin_username
        self._admin_password = admin_password
        self._index: Optional[SearchIndex] = None
        self._index_lock = threading.Lock()
        self._index_generation = 0  # bumped on every invalidation

    @classmethod
    def from_settings(cls, settings: Settings) -> 'CatalogService':
        store = CatalogStore.from_url(settings.database_url, echo=settings.db_echo)
        store.create_schema()
        logger.info("Catalog store ready (dialect=%s)", store.engine.dialect.name)
        return cls(
            store,
            index_ttl_seconds=settings.search_index_ttl_seconds,
            admin_username=settings.admin_username,
            admin_password=settings.admin_password,
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, username: str, password: str) -> AuthenticatedCaller:
        """Check admin credentials; raise Unauthorized on any mismatch."""
        if not self._admin_password:
            raise Unauthorized("Login is disabled: no admin password configured")
        if not username or not password:
            raise Unauthorized("Username and password are required")

        user_ok = hmac.compare_digest(username.encode(), self._admin_username.encode())
        password_ok = hmac.compare_digest(password.encode(), self._admin_password.encode())
        if not (user_ok and password_ok):
            logger.warning("Failed login attempt", extra={'username': username})
            raise Unauthorized("Invalid credentials")

        logger.info("Admin logged in", extra={'username': username})
        return AuthenticatedCaller(username, _CALLER_TOKEN)

    @staticmethod
    def _require_caller(caller: Optional[AuthenticatedCaller]) -> None:
        if not isinstance(caller, AuthenticatedCaller):
            raise Unauthorized()

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def preview_import(self, source: Source) -> ImportPreview:
        """First PREVIEW_LIMIT parsed records and the total; nothing is stored."""
        result = ingest_file(source)
        return ImportPreview(
            records=result.records[:PREVIEW_LIMIT],
            total_count=result.accepted,
            counts=result.counts(),
        )

    def commit_import(self, source: Source, caller: Optional[AuthenticatedCaller]) -> ImportSummary:
        """
        Replace the whole catalog with the CSV's records.

        Raises:
            Unauthorized: no authenticated caller
            IngestionFailed: unreadable file, no valid records, or storage
                conflict; in every case the previous catalog is unchanged
        """
        self._require_caller(caller)

        try:
            result = ingest_file(source)
        except ReadError as e:
            raise IngestionFailed("CSV file is invalid or empty", detail=e.detail) from e

        if not is_valid_batch(result):
            raise IngestionFailed("No valid records found in the CSV", detail=result.counts())

        try:
            inserted = self.store.replace_all(result.records)
        except IngestionFailed as e:
            e.detail = {**(e.detail or {}), **result.counts()}
            raise

        self.invalidate_search_index()
        summary = ImportSummary(
            total_processed=result.total_processed,
            total_inserted=len(inserted),
            duplicates_skipped=result.duplicates_skipped,
            inserted_preview=inserted[:INSERTED_PREVIEW_LIMIT],
        )
        logger.info(
            "Import committed by %s: %d inserted, %d duplicates skipped",
            caller.username, summary.total_inserted, summary.duplicates_skipped,
        )
        return summary

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def invalidate_search_index(self) -> None:
        with self._index_lock:
            self._index = None
            self._index_generation += 1

    def refresh_search_index(self) -> SearchIndex:
        """
        Build an index from a fresh snapshot and cache it.

        A snapshot read before a concurrent invalidation is still returned to
        this caller but not cached, so the next search rebuilds.
        """
        with self._index_lock:
            generation = self._index_generation
        snapshot = self.store.find_all(order_by='id')
        index = SearchIndex(snapshot)
        with self._index_lock:
            if generation == self._index_generation:
                self._index = index
                logger.debug("Search index rebuilt with %d records", len(index))
            else:
                logger.debug("Catalog changed during index rebuild; snapshot not cached")
        return index

    def _current_index(self) -> SearchIndex:
        with self._index_lock:
            index = self._index
        if index is None or index.age_seconds() > self.index_ttl_seconds:
            index = self.refresh_search_index()
        return index

    def search(
        self,
        query: Optional[str],
        limit=DEFAULT_LIMIT,
        vip_only: bool = False,
        free_only: bool = False,
    ) -> List[CatalogRecord]:
        """Ranked records for ``query``; vip_only wins if both filters are set."""
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = DEFAULT_LIMIT

        predicate = None
        if vip_only:
            predicate = lambda record: record.is_vip  # noqa: E731
        elif free_only:
            predicate = lambda record: not record.is_vip  # noqa: E731

        return self._current_index().search(query, limit=limit, predicate=predicate)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def sample(self, n=DEFAULT_SAMPLE_SIZE) -> SampleResult:
        return sample_catalog(self.store, n)

    def get_record(self, record_id: int) -> CatalogRecord:
        record = self.store.find_by_primary_key(record_id)
        if record is None:
            raise NotFound(detail={'id': record_id})
        return record

    def list_all(self) -> List[CatalogRecord]:
        return self.store.find_all(order_by='id')

    def list_by_tier(self, vip: bool) -> List[CatalogRecord]:
        return self.store.find_by_tier(vip)

    def stats(self) -> Dict[str, int]:
        return {
            'total_models': self.store.count(),
            'vip_models': self.store.count(vip=True),
        }

    # ------------------------------------------------------------------
    # Presentation content
    # ------------------------------------------------------------------

    def update_presentation_content(
        self,
        record_id: int,
        content: Optional[str],
        caller: Optional[AuthenticatedCaller],
    ) -> CatalogRecord:
        """
        Raises:
            Unauthorized, InvalidInput (empty content), NotFound (unknown id)
        """
        self._require_caller(caller)
        if content is None or not str(content).strip():
            raise InvalidInput("Presentation content is required", detail={'id': record_id})

        record = self.store.update_presentation_content(record_id, content)
        if record is None:
            raise NotFound(detail={'id': record_id})

        self.invalidate_search_index()
        return record
