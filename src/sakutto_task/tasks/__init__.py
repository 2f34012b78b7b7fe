"""
Task subsystem.

Components:
- task_models.py: data structures (Task, RecurrenceRule, ExclusionSet, ...)
- recurrence.py: pure "does this task occur on date D?" evaluation
- time_hint.py: time-of-day extraction from titles (list ordering)
- holidays.py: holiday lookup for calendar rendering
- task_store.py: SQLite-backed storage + query/update helpers
- task_api.py: validated high-level operations and the daily occurrence list
"""
