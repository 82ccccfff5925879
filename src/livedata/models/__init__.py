# Waylight Live Data - Models Package

# Import all ORM models to register them with SQLAlchemy's declarative base
from .base import Base
from .orm_live import LivePark, LiveAttraction, LiveEntertainment, LiveSyncStatus
from .orm_crowd import ParkCrowdPrediction

__all__ = [
    'Base',
    'LivePark',
    'LiveAttraction',
    'LiveEntertainment',
    'LiveSyncStatus',
    'ParkCrowdPrediction',
]
