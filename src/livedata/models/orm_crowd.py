"""
SQLAlchemy ORM Model: Park Crowd Predictions
Daily 1-10 crowd levels per park, from the Queue-Times forecast or the
Thrill Data crowd calendar. Unique per (park_id, prediction_date).
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Float, Integer, SmallInteger, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from livedata.models.base import Base


class ParkCrowdPrediction(Base):
    __tablename__ = "park_crowd_predictions"
    __table_args__ = (
        UniqueConstraint('park_id', 'prediction_date', name='uq_crowd_predictions_park_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    park_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    prediction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    crowd_level: Mapped[int] = mapped_column(SmallInteger, nullable=False, comment="1-10 scale")
    crowd_level_description: Mapped[str] = mapped_column(String(32), nullable=False)
    recommendation: Mapped[Optional[str]] = mapped_column(Text)
    data_source: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="queue_times_api, thrill_data_api, ..."
    )
    confidence_score: Mapped[Optional[float]] = mapped_column(Float, comment="0.00-1.00 when known")

    synced_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ParkCrowdPrediction(park_id={self.park_id!r}, "
            f"prediction_date={self.prediction_date}, crowd_level={self.crowd_level})>"
        )
