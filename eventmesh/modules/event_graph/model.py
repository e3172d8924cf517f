"""
Event Graph Models

Purpose
-------
SQLAlchemy models for the durable event store:

- `event_history`: one row per documentable event
- `narrative_context`: at most one narrative per event

Schema Design
-------------
- `timestamp` is epoch milliseconds (BIGINT), indexed for range filters
- `event_name` and `source` indexed for equality filters
- `user_intent`, `context` and `metadata` are JSON documents in the wire
  (camelCase) form; JSONB on PostgreSQL
- `user_id` / `session_id` are copied out of `metadata` into indexed columns
  so history filters run in SQL
- `narrative_context.event_id` is unique: the upsert key

Non-Responsibilities
--------------------
- No querying logic (handled by repository.py)
- No conversion to domain types beyond `to_event` / `to_narrative`
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB

from eventmesh.core.database.base import Base, TimestampMixin, utc_now
from eventmesh.modules.event_graph.types import DocumentableEvent, NarrativeContext

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class EventHistory(Base):
    """Durable row of a DocumentableEvent."""

    __tablename__ = "event_history"

    # ═══════════════════════════════════════════════════════════════════════
    # IDENTITY
    # ═══════════════════════════════════════════════════════════════════════

    id = Column(
        String(36),
        primary_key=True,
        comment="Event id (UUID4 string)",
    )

    event_name = Column(
        String(200),
        nullable=False,
        index=True,
        comment="Dotted event name, e.g. widget.created",
    )

    source = Column(
        String(200),
        nullable=False,
        default="",
        index=True,
        comment="Publishing widget or component",
    )

    timestamp = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="Epoch milliseconds when the event happened",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # CONTENT
    # ═══════════════════════════════════════════════════════════════════════

    payload = Column(
        JSONDocument,
        nullable=True,
        comment="Opaque event payload",
    )

    should_document = Column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
        comment="Include in narrative generation",
    )

    user_intent = Column(
        JSONDocument,
        nullable=True,
        comment="Why the user acted: problemSolved, painPoint, goal, ...",
    )

    context = Column(
        JSONDocument,
        nullable=True,
        comment="relatedEvents, outcome, decision, category",
    )

    # `metadata` is reserved on declarative classes
    event_metadata = Column(
        "metadata",
        JSONDocument,
        nullable=True,
        comment="userId, sessionId, environment and free-form keys",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # DENORMALIZED FILTER COLUMNS
    # ═══════════════════════════════════════════════════════════════════════

    user_id = Column(String(200), nullable=True, index=True)

    session_id = Column(String(200), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="When the row was written",
    )

    __table_args__ = (
        Index("ix_event_history_name_timestamp", "event_name", "timestamp"),
    )

    @classmethod
    def from_event(cls, event: DocumentableEvent) -> EventHistory:
        record = event.to_record()
        return cls(
            id=record["id"],
            event_name=record["event_name"],
            source=record["source"],
            timestamp=record["timestamp"],
            payload=record["payload"],
            should_document=record["should_document"],
            user_intent=record["user_intent"],
            context=record["context"],
            event_metadata=record["metadata"],
            user_id=event.user_id,
            session_id=event.session_id,
        )

    def to_event(self) -> DocumentableEvent:
        return DocumentableEvent.from_record(
            {
                "id": self.id,
                "event_name": self.event_name,
                "source": self.source,
                "timestamp": self.timestamp,
                "payload": self.payload,
                "should_document": self.should_document,
                "user_intent": self.user_intent,
                "context": self.context,
                "metadata": self.event_metadata,
            }
        )

    def __repr__(self) -> str:
        return (
            f"<EventHistory(id={self.id}, event_name={self.event_name}, "
            f"timestamp={self.timestamp})>"
        )


class NarrativeContextRow(TimestampMixin, Base):
    """Durable row of a NarrativeContext."""

    __tablename__ = "narrative_context"

    id = Column(String(36), primary_key=True)

    event_id = Column(
        String(36),
        ForeignKey("event_history.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="The one event this narrative documents",
    )

    long_description = Column(Text, nullable=True)
    screenshots = Column(JSONDocument, nullable=True, comment="Screenshot URLs")
    code_snippets = Column(JSONDocument, nullable=True, comment="[{language, code}]")
    related_docs = Column(JSONDocument, nullable=True, comment="Document URLs")

    ai_narrative = Column(Text, nullable=True)
    ai_summary = Column(Text, nullable=True)
    ai_tags = Column(JSONDocument, nullable=True)

    def to_narrative(self) -> NarrativeContext:
        return NarrativeContext.from_record(
            {
                "id": self.id,
                "event_id": self.event_id,
                "long_description": self.long_description,
                "screenshots": self.screenshots,
                "code_snippets": self.code_snippets,
                "related_docs": self.related_docs,
                "ai_narrative": self.ai_narrative,
                "ai_summary": self.ai_summary,
                "ai_tags": self.ai_tags,
                "created_at": self.created_at,
                "updated_at": self.updated_at,
            }
        )

    def __repr__(self) -> str:
        return f"<NarrativeContextRow(id={self.id}, event_id={self.event_id})>"
