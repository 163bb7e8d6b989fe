"""
================================================================================
AniSync v1.0 - Database Models
================================================================================
One table per media type. Each row is a whole canonical record: the AniList
media and its connectors are stored as JSON and always replaced together.

  - anime: AnimeMapping
  - manga: MangaMapping
================================================================================
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime, JSON
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()


# =============================================================================
# MIXINS
# =============================================================================

class TimestampMixin:
    """Adds created_at and updated_at timestamps to models."""
    @declared_attr
    def created_at(cls):
        return Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    @declared_attr
    def updated_at(cls):
        return Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)


class MappingMixin(TimestampMixin):
    """Columns shared by both mapping tables."""
    id = Column(String(32), primary_key=True)            # AniList id
    title = Column(String(500), nullable=False, default='')
    search_text = Column(Text, nullable=False, default='')  # lower-cased titles + synonyms
    media = Column(JSON, nullable=False)
    connectors = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.id} '{self.title}'>"


class AnimeMapping(MappingMixin, Base):
    __tablename__ = 'anime'


class MangaMapping(MappingMixin, Base):
    __tablename__ = 'manga'
