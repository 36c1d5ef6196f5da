from datetime import datetime
from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from club_scheduler.database import Base
from club_scheduler.utils.timestamps import utcnow


class Team(Base):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sport: Mapped[str] = mapped_column(String(50), nullable=False, default="Tackle Football")
    age_group: Mapped[str | None] = mapped_column(String(50))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Spond linkage: normalized group (or subgroup) id, plus the parent group when it is a subgroup
    spond_group_id: Mapped[str | None] = mapped_column(String(32), index=True)
    spond_parent_group_id: Mapped[str | None] = mapped_column(String(32))
    spond_data: Mapped[str | None] = mapped_column(Text)  # Last-seen group payload (JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    events: Mapped[list["Event"]] = relationship("Event", back_populates="team")

    @property
    def is_spond_subgroup(self) -> bool:
        return bool(self.spond_group_id and self.spond_parent_group_id)
