"""
SQLAlchemy ORM Models: Live Data Tables
Current park state, attraction waits, entertainment schedules and per-source
sync health. Every table is keyed by its natural business key so syncs upsert.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from livedata.models.base import Base


class LivePark(Base):
    __tablename__ = "live_parks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    park_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Internal park id (upsert key)"
    )
    external_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="ThemeParks.wiki entity UUID"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    regular_open: Mapped[Optional[str]] = mapped_column(String(40))
    regular_close: Mapped[Optional[str]] = mapped_column(String(40))
    early_entry_open: Mapped[Optional[str]] = mapped_column(String(40))
    extended_evening_close: Mapped[Optional[str]] = mapped_column(String(40))

    crowd_level: Mapped[Optional[int]] = mapped_column(Integer, comment="1-10 scale")

    last_updated: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        index=True,
        comment="UTC timestamp of the upstream data (retention key)"
    )

    def __repr__(self) -> str:
        return f"<LivePark(park_id={self.park_id!r}, status={self.status!r})>"


class LiveAttraction(Base):
    __tablename__ = "live_attractions"
    __table_args__ = (
        UniqueConstraint('park_id', 'external_id', name='uq_live_attractions_park_external'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    park_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    wait_time: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=-1,
        comment="Standby minutes, -1 when unknown"
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False)

    lightning_lane_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lightning_lane_return_time: Mapped[Optional[str]] = mapped_column(String(40))
    single_rider_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    single_rider_wait_time: Mapped[Optional[int]] = mapped_column(Integer)

    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LiveAttraction(park_id={self.park_id!r}, external_id={self.external_id!r}, wait_time={self.wait_time})>"


class LiveEntertainment(Base):
    __tablename__ = "live_entertainment"
    __table_args__ = (
        UniqueConstraint('park_id', 'external_id', name='uq_live_entertainment_park_external'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    park_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    show_times: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    next_show_time: Mapped[Optional[str]] = mapped_column(String(40))

    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)


class LiveSyncStatus(Base):
    """One row per upstream service; counters only ever increase."""
    __tablename__ = "live_sync_status"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    last_sync_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_success_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_error: Mapped[Optional[str]] = mapped_column(Text)

    total_syncs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_syncs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_syncs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
