"""Database repositories over SQLAlchemy Core.

Repository classes:
    - EventRepository: Event lookup and conditional status updates
    - RegistrationHistoryRepository: Append-only attempt log
    - FailureRecordRepository: Latest give-up per (event, strategy)
"""

from .event import EventRepository
from .failure_record import FailureRecordRepository
from .registration_history import RegistrationHistoryRepository

__all__ = [
    "EventRepository",
    "FailureRecordRepository",
    "RegistrationHistoryRepository",
]
