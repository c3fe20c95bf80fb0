"""SQLAlchemy schemas for the memory index store and vector index."""

from __future__ import annotations

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base."""


class MemoryRecord(Base):
    """Memory document table."""

    __tablename__ = "memories"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    type: Mapped[str] = mapped_column(String(32))
    content: Mapped[str] = mapped_column(Text)
    created: Mapped[str] = mapped_column(String(20))
    accessed: Mapped[str] = mapped_column(String(20))
    access_count: Mapped[int] = mapped_column(Integer, default=0)
    tags: Mapped[list[MemoryTagRecord]] = relationship(
        back_populates="memory",
        order_by="MemoryTagRecord.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_memories_type", "type"),)

    @property
    def tag_names(self) -> list[str]:
        return [row.tag for row in self.tags]


class MemoryTagRecord(Base):
    """Multi-value tag index, one row per (memory, tag) in insertion order."""

    __tablename__ = "memory_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    memory_id: Mapped[str] = mapped_column(ForeignKey("memories.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer)
    tag: Mapped[str] = mapped_column(String(255))
    memory: Mapped[MemoryRecord] = relationship(back_populates="tags")

    __table_args__ = (
        Index("ix_memory_tags_tag", "tag"),
        Index("ix_memory_tags_memory_id", "memory_id"),
    )


class MemoryVectorRecord(Base):
    """Vector index keyed by memory id. Entries may outlive their document."""

    __tablename__ = "memory_vectors"

    memory_id: Mapped[str] = mapped_column(String(16), primary_key=True)
    dimension: Mapped[int] = mapped_column(Integer)
    vector: Mapped[list[float]] = mapped_column(JSON)
