"""
Relational storage adapter for the catalog (SQLAlchemy).

The rest of the code only sees CatalogRecord objects. This module owns:
    - the ``catalog_records`` table (CatalogRow)
    - compatible_models <-> JSON text conversion (serialize_models / deserialize_models)
    - transactions: a full replace is delete-all + bulk insert in ONE transaction,
      so readers see either the old catalog or the new one, never a mix
    - the dialect-specific random ordering used by the sampling view, chosen
      once from the engine's dialect

Replace transactions are serialized by the database, not by this process.
"""

import json
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, create_engine, delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from errors import IngestionFailed
from log_setup import get_logger
from records import CatalogRecord

logger = get_logger(__name__)

Base = declarative_base()

T = TypeVar('T')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogRow(Base):
    """One catalog record as stored."""
    __tablename__ = "catalog_records"

    id = Column(Integer, primary_key=True, index=True)
    model_name = Column(String(255), nullable=False, unique=True, index=True)
    compatible_models = Column(Text, nullable=True)
    # JSON array text, e.g. '["iPhone 11", "iPhone XR"]'

    presentation_content = Column(Text, nullable=True)
    # Custom markup shown on the model's card; never parsed here

    is_vip = Column(Boolean, default=False, index=True)
    is_compatible = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return (
            f"<CatalogRow(id={self.id}, "
            f"model_name='{self.model_name}', "
            f"vip={self.is_vip})>"
        )


# ---------------------------------------------------------------------------
# Boundary (de)serialization
# ---------------------------------------------------------------------------

def serialize_models(models: List[str]) -> str:
    return json.dumps(list(models or []), ensure_ascii=False)


def deserialize_models(text: Optional[str]) -> List[str]:
    """JSON text -> list; empty or unreadable values become []."""
    if not text:
        return []
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        logger.warning("Unreadable compatible_models value: %r", text[:80])
        return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def to_row(record: CatalogRecord) -> CatalogRow:
    return CatalogRow(
        model_name=record.model_name,
        compatible_models=serialize_models(record.compatible_models),
        presentation_content=record.presentation_content,
        is_vip=record.is_vip,
        is_compatible=record.is_compatible,
    )


def to_record(row: CatalogRow) -> CatalogRecord:
    return CatalogRecord(
        id=row.id,
        model_name=row.model_name,
        compatible_models=deserialize_models(row.compatible_models),
        is_vip=bool(row.is_vip),
        is_compatible=bool(row.is_compatible),
        presentation_content=row.presentation_content,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Engine / dialect
# ---------------------------------------------------------------------------

# SQL random() spelling per dialect
RANDOM_FUNCTIONS = {
    'sqlite': func.random,
    'postgresql': func.random,
    'mysql': func.rand,
    'mariadb': func.rand,
    'mssql': func.newid,
}


def random_order_function(dialect_name: str) -> Callable:
    return RANDOM_FUNCTIONS.get(dialect_name, func.random)


def create_catalog_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the engine for a configured URL.

    SQLite connections are shared across Streamlit's script threads; the
    in-memory form keeps a single connection so every session sees one database.
    """
    kwargs = {'echo': echo, 'future': True}
    if database_url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            kwargs['poolclass'] = StaticPool
    else:
        kwargs['pool_pre_ping'] = True
    return create_engine(database_url, **kwargs)


# Named orderings for find_all(); "id" is catalog (import) order
ORDERINGS = {
    'id': (CatalogRow.id.asc(),),
    'recent': (CatalogRow.created_at.desc(), CatalogRow.id.asc()),
    'model_name': (CatalogRow.model_name.asc(),),
}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class CatalogTransaction:
    """Operations that only make sense inside run_in_transaction()."""

    def __init__(self, session: Session):
        self.session = session

    def bulk_delete(self) -> int:
        result = self.session.execute(delete(CatalogRow))
        return result.rowcount or 0

    def bulk_insert(self, records: List[CatalogRecord]) -> List[CatalogRecord]:
        rows = [to_row(record) for record in records]
        self.session.add_all(rows)
        self.session.flush()
        return [to_record(row) for row in rows]


class CatalogStore:
    """Storage collaborator: plain reads plus one transactional bulk replace."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._random_fn = random_order_function(engine.dialect.name)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> 'CatalogStore':
        return cls(create_catalog_engine(database_url, echo=echo))

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    # --- reads ---

    def find_all(self, order_by: str = 'id') -> List[CatalogRecord]:
        ordering = ORDERINGS.get(order_by)
        if ordering is None:
            raise ValueError(f"Unknown ordering: {order_by}")
        with self._session_factory() as session:
            rows = session.scalars(select(CatalogRow).order_by(*ordering)).all()
            return [to_record(row) for row in rows]

    def find_by_tier(self, vip: bool) -> List[CatalogRecord]:
        with self._session_factory() as session:
            stmt = select(CatalogRow).where(CatalogRow.is_vip == vip).order_by(CatalogRow.id.asc())
            return [to_record(row) for row in session.scalars(stmt).all()]

    def find_by_primary_key(self, record_id: int) -> Optional[CatalogRecord]:
        with self._session_factory() as session:
            row = session.get(CatalogRow, record_id)
            return to_record(row) if row is not None else None

    def count(self, vip: Optional[bool] = None) -> int:
        stmt = select(func.count()).select_from(CatalogRow)
        if vip is not None:
            stmt = stmt.where(CatalogRow.is_vip == vip)
        with self._session_factory() as session:
            return session.scalar(stmt) or 0

    def random_sample(self, n: int) -> List[CatalogRecord]:
        """n records in database-side random order."""
        stmt = select(CatalogRow).order_by(self._random_fn()).limit(n)
        with self._session_factory() as session:
            return [to_record(row) for row in session.scalars(stmt).all()]

    # --- writes ---

    def run_in_transaction(self, fn: Callable[[CatalogTransaction], T]) -> T:
        """Run fn in one transaction; commit on return, roll back on any exception."""
        with self._session_factory.begin() as session:
            return fn(CatalogTransaction(session))

    def replace_all(self, records: List[CatalogRecord]) -> List[CatalogRecord]:
        """
        Swap the whole catalog for ``records`` atomically.

        Raises:
            IngestionFailed: any storage error; the previous catalog is untouched
        """
        def _replace(tx: CatalogTransaction) -> List[CatalogRecord]:
            deleted = tx.bulk_delete()
            inserted = tx.bulk_insert(records)
            logger.info("Catalog replace: %d deleted, %d inserted", deleted, len(inserted))
            return inserted

        try:
            return self.run_in_transaction(_replace)
        except SQLAlchemyError as e:
            logger.error("Catalog replace rolled back: %s", e, exc_info=True)
            raise IngestionFailed(
                "Storage rejected the new catalog; previous catalog kept",
                detail={'reason': str(getattr(e, 'orig', None) or e), 'attempted': len(records)},
            ) from e

    def update_presentation_content(self, record_id: int, content: str) -> Optional[CatalogRecord]:
        """Patch one record's presentation content. None if the id does not exist."""
        with self._session_factory.begin() as session:
            row = session.get(CatalogRow, record_id)
            if row is None:
                return None
            row.presentation_content = content
            session.flush()
            return to_record(row)
