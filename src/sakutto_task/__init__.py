"""sakutto-task: recurring task reminders with email / web push notifications."""

__version__ = "0.1.0"
