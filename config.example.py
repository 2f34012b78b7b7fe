# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "SAKUTTO_APP_NAME": "App display name (default: sakutto-task).",
    "SAKUTTO_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "SAKUTTO_DATA_DIR": "Local data directory (default: .local/sakutto).",
    "SAKUTTO_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    # Email (SMTP); unprefixed SMTP_* names are accepted too
    "SAKUTTO_SMTP_HOST": "SMTP server host (email notifications fail without it).",
    "SAKUTTO_SMTP_PORT": "SMTP port (default: 587).",
    "SAKUTTO_SMTP_USER": "SMTP login user.",
    "SAKUTTO_SMTP_PASSWORD": "SMTP login password.",
    "SAKUTTO_SMTP_FROM": "From address (default: SMTP user).",
    "SAKUTTO_SMTP_STARTTLS": "Use STARTTLS (true/false, default: true).",
    # Web Push; WEB_PUSH_VAPID_* names are accepted too
    "SAKUTTO_VAPID_PUBLIC_KEY": "VAPID public key (handed to browsers when subscribing).",
    "SAKUTTO_VAPID_PRIVATE_KEY": "VAPID private key (push notifications fail without it).",
    "SAKUTTO_VAPID_SUBJECT": "VAPID subject claim (default: mailto:admin@example.com).",
    # Dispatch loop
    "SAKUTTO_DISPATCH_INTERVAL_SECONDS": "Polling interval of `sakutto-task run` (default: 30).",
    "SAKUTTO_DISPATCH_TIMEOUT_SECONDS": "Soft timeout for one dispatch call (default: 240).",
    # Calendar
    "SAKUTTO_HOLIDAY_YEARS_AHEAD": "Years covered by holiday lookup and date search (default: 20).",
}
