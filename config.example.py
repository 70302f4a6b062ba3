# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets: keep AWM_GATEWAY_TOKEN and AWM_MATRIX_PASSWORD in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "AWM_APP_NAME": "App display name (default: awm).",
    "AWM_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "AWM_LOG_DIR": "Directory for awm.log (default: <data_dir>).",
    # Scheduling
    "AWM_DEFAULT_STATUS_INTERVAL": "Status interval given to projects created without one (default: 15m).",
    "AWM_OVERDUE_THRESHOLD": "Monitoring multiplier: wake only after interval * threshold (default: 2.0).",
    "AWM_IDLE_THRESHOLD": "Global idle threshold, per-agent overrides win (default: 30m).",
    "AWM_CLI_COMMAND": "Command name shown in rendered guidance (default: awm).",
    # Wake runner
    "AWM_DRY_RUN": "Log wakes instead of sending them (true/false).",
    "AWM_RUN_ONCE": "Run a single tick and exit (default: true). Set false to loop.",
    "AWM_TICK_INTERVAL_SECONDS": "Seconds between ticks when looping (default: 60).",
    # Silent channel (agent gateway)
    "AWM_GATEWAY_URL": "Agent gateway base URL (default: http://localhost:18789).",
    "AWM_GATEWAY_TOKEN": "Gateway bearer token (GATEWAY_TOKEN is accepted too).",
    # Visible channel (Matrix)
    "AWM_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "AWM_MATRIX_USER_ID": "Matrix user ID used for escalations.",
    "AWM_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    # Paths (gitignored)
    "AWM_DATA_DIR": "Local data directory (default: .local/awm).",
    "AWM_DB_PATH": "Task/agent/history SQLite path (default: <data_dir>/awm.sqlite3).",
    "AWM_WAKE_STATE_PATH": "Wake state JSON path (default: <data_dir>/wake_state.json).",
    "AWM_CHANNEL_MAP_PATH": "Agent -> channel map JSON (default: <data_dir>/channels.json).",
    "AWM_MATRIX_STORE_PATH": "Directory holding the saved Matrix session.json (default: <data_dir>/matrix_store).",
}
