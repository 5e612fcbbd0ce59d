"""Database package.

Provides the engine factory, SQLAlchemy Core tables and repositories.

## Usage

```python
from registrar.db import SqlRegistrationStore, create_engine

store = SqlRegistrationStore(create_engine(settings))
events = await store.list_events_by_status(EventStatus.APPROVED)
```
"""

from .repositories import (
    EventRepository,
    FailureRecordRepository,
    RegistrationHistoryRepository,
)
from .session import create_engine
from .store import SqlRegistrationStore
from .tables import events, failure_records, metadata, registration_history

__all__ = [
    "EventRepository",
    "FailureRecordRepository",
    "RegistrationHistoryRepository",
    "SqlRegistrationStore",
    "create_engine",
    "events",
    "failure_records",
    "metadata",
    "registration_history",
]
