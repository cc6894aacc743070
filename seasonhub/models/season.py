from sqlalchemy import Column, Integer, String, Boolean, Date, Time, DateTime, ForeignKey, Index, func
from seasonhub.core.database import Base

class Season(Base):
    __tablename__ = "seasons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, nullable=False, index=True)  # owner; schools live outside this service
    name = Column(String(255), nullable=True)  # e.g. "Temporada 2025-2026"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    hour_start = Column(Time, nullable=True)
    hour_end = Column(Time, nullable=True)
    vacation_days = Column(String, nullable=True)

    is_active = Column(Boolean, default=False, nullable=False)
    is_closed = Column(Boolean, default=False, nullable=False)
    is_historical = Column(Boolean, default=False, nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)  # tombstone

    __table_args__ = (
        Index("ix_seasons_school_dates", "school_id", "start_date", "end_date"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
