"""
================================================================================
AniSync v1.0 - Mapping Store
================================================================================
Persistent storage of canonical records, one table per media type.

OPERATIONS:
  - get(id, type)        -> CanonicalRecord or None
  - search(query, type)  -> records with a title or synonym equal to the query
  - insert(records, type)-> number of rows written (replace whole record)
  - export(type)         -> JSON array of every record

Writes to the same canonical id are serialised with a per-id lock, so two
resolutions finishing together cannot interleave a read-then-write. A lock
lives only while some writer holds or waits for it.
All SQLAlchemy failures surface as StorageError.
================================================================================
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence, Type

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from .database import get_db_session, get_session_factory
from .errors import StorageError
from .mapping.models import CanonicalRecord, MediaType
from .mapping.sanitizer import sanitize_title
from .models import AnimeMapping, MangaMapping, MappingMixin

logger = logging.getLogger(__name__)

TABLES: Dict[MediaType, Type[MappingMixin]] = {
    MediaType.ANIME: AnimeMapping,
    MediaType.MANGA: MangaMapping,
}


def _title_key(title: str) -> str:
    return sanitize_title(title).lower()


def _search_text(record: CanonicalRecord) -> str:
    """One normalised title per line."""
    keys = (_title_key(t) for t in record.media.titles.all_titles())
    return "\n".join(k for k in keys if k)


class MappingStore:
    """SQLAlchemy-backed record store."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory
        # key -> [lock, writers holding or waiting]
        self._locks: Dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def _session(self):
        return get_db_session(self._session_factory or get_session_factory())

    @contextmanager
    def _locked(self, media_type: MediaType, canonical_id: str) -> Iterator[None]:
        key = f"{media_type.value}:{canonical_id}"
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    @staticmethod
    def _to_record(row: MappingMixin) -> CanonicalRecord:
        return CanonicalRecord.from_dict({
            "id": row.id,
            "media": row.media,
            "connectors": row.connectors or [],
        })

    def get(self, canonical_id: str, media_type: MediaType) -> Optional[CanonicalRecord]:
        table = TABLES[MediaType.parse(media_type)]
        try:
            with self._session() as session:
                row = session.get(table, str(canonical_id))
                return self._to_record(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"get {canonical_id} failed: {e}") from e

    def search(self, query: str, media_type: MediaType) -> List[CanonicalRecord]:
        """
        Records with a stored title or synonym equal to the query.

        Both sides are sanitized and lower-cased; partial titles do not match.
        """
        needle = _title_key(query or "")
        if not needle:
            return []

        table = TABLES[MediaType.parse(media_type)]
        try:
            with self._session() as session:
                rows = session.execute(
                    select(table)
                    .where(or_(
                        table.search_text == needle,
                        table.search_text.startswith(needle + "\n", autoescape=True),
                        table.search_text.endswith("\n" + needle, autoescape=True),
                        table.search_text.contains("\n" + needle + "\n", autoescape=True),
                    ))
                    .order_by(table.id)
                ).scalars().all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"search '{query}' failed: {e}") from e

    def insert(self, records: Sequence[CanonicalRecord], media_type: MediaType) -> int:
        """
        Persist records, replacing any stored row with the same id.

        Records without connectors are skipped.

        Returns:
            Number of records written
        """
        media_type = MediaType.parse(media_type)
        table = TABLES[media_type]
        written = 0

        for record in records:
            if not record.connectors:
                logger.debug(f"Skipping {record.id}: no connectors")
                continue

            with self._locked(media_type, record.id):
                try:
                    with self._session() as session:
                        row = session.get(table, record.id)
                        if row is None:
                            row = table(id=record.id)
                            session.add(row)
                        row.title = record.media.titles.primary()
                        row.search_text = _search_text(record)
                        row.media = record.media.to_dict()
                        row.connectors = [c.to_dict() for c in record.connectors]
                except SQLAlchemyError as e:
                    raise StorageError(f"insert {record.id} failed: {e}") from e
            written += 1

        if written:
            logger.info(f"Stored {written} {media_type.value.lower()} record(s)")
        return written

    def export(self, media_type: MediaType) -> str:
        """Serialize every stored record of a type as a JSON array."""
        table = TABLES[MediaType.parse(media_type)]
        try:
            with self._session() as session:
                rows = session.execute(select(table).order_by(table.id)).scalars().all()
                data = [self._to_record(row).to_dict() for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"export failed: {e}") from e
        return json.dumps(data, ensure_ascii=False, indent=2)

    def count(self, media_type: MediaType) -> int:
        table = TABLES[MediaType.parse(media_type)]
        try:
            with self._session() as session:
                return session.query(table).count()
        except SQLAlchemyError as e:
            raise StorageError(f"count failed: {e}") from e
