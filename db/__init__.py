from .db import (
    Base,
    Reminder,
    RecordStore,
    SqlRecordStore,
    get_engine,
    create_all,
    insert_reminder_record,
    fetch_reminder_records,
    dispose_engine,
)  # noqa: F401
