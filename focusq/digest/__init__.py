"""
Scheduled Slack digest subsystem.

    focusq/digest/
    ├── state.py      - DigestState + SQLite deduplication store
    ├── scheduler.py  - fixed daily slots in the user's timezone
    ├── composer.py   - one guarded digest cycle (collect, analyse, rank, dispatch)
    ├── blocks.py     - Slack Block Kit payload
    ├── actions.py    - "Create Task" button handling
    └── service.py    - host facade: start / stop / mark_task_created
"""
