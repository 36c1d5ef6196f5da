import enum
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, JSON, Enum, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from club_scheduler.database import Base
from club_scheduler.utils.timestamps import utcnow


class EventType(str, enum.Enum):
    game = "Game"
    practice = "Practice"
    meeting = "Meeting"
    other = "Other"


class EventStatus(str, enum.Enum):
    planned = "Planned"
    confirmed = "Confirmed"
    cancelled = "Cancelled"
    completed = "Completed"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_start_time", "start_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    event_type: Mapped[EventType] = mapped_column(
        Enum(EventType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EventType.other,
    )
    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EventStatus.planned,
    )

    # Local wall-clock times, stored without zone conversion
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    team_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="SET NULL"), index=True
    )
    team_ids: Mapped[list[int] | None] = mapped_column(JSON)
    field_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("fields.id", ondelete="SET NULL"), index=True
    )

    # Spond link; spond_id is unique among linked events
    spond_id: Mapped[str | None] = mapped_column(String(32), unique=True, index=True)
    spond_group_id: Mapped[str | None] = mapped_column(String(32), index=True)
    spond_data: Mapped[str | None] = mapped_column(Text)

    # Attendance snapshot pulled from Spond
    attendance_accepted: Mapped[int | None] = mapped_column(Integer)
    attendance_declined: Mapped[int | None] = mapped_column(Integer)
    attendance_unanswered: Mapped[int | None] = mapped_column(Integer)
    attendance_waiting: Mapped[int | None] = mapped_column(Integer)
    attendance_unconfirmed: Mapped[int | None] = mapped_column(Integer)
    attendance_estimated: Mapped[int | None] = mapped_column(Integer)
    attendance_last_sync: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    attendance_data: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    team: Mapped["Team"] = relationship("Team", back_populates="events")
    field: Mapped["Field"] = relationship("Field")
    participants: Mapped[list["EventParticipant"]] = relationship(
        "EventParticipant", back_populates="event", cascade="all, delete-orphan"
    )

    @property
    def is_linked(self) -> bool:
        return self.spond_id is not None
