# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TEMPO_APP_NAME": "App display name (default: tempo).",
    "TEMPO_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Surfaces
    "TEMPO_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "TEMPO_HTTP_ENABLED": "Serve the JSON HTTP API in the background (true/false, default: false).",
    "TEMPO_HTTP_HOST": "HTTP bind address (default: 127.0.0.1).",
    "TEMPO_HTTP_PORT": "HTTP port (default: 3001).",
    # Paths (gitignored)
    "TEMPO_DATA_DIR": "Local data directory for the store, exports and tempo.log (default: .local/tempo).",
    "TEMPO_STORE_PATH": "JSON store file (default: <data_dir>/store.json).",
    # Defaults
    "TEMPO_DEFAULT_PROJECT_COLOR": "Color for new projects without one (default: #6366f1).",
}
