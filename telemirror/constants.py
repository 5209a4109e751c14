"""Constants used across telemirror.

This module defines shared constants to ensure consistency.
"""

MAIN_MODULE = "__main__"
SERVICE_NAME = "telegram-webhook"

# Telegram Bot API
TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_HTTP_TIMEOUT_S = 10.0
DEFAULT_BOT_USERNAME = "claude_remote_bot"
WEBHOOK_PATH = "/webhook/telegram"
WEBHOOK_ALLOWED_UPDATES = ["message", "callback_query"]

# Outbound message layout
CHUNK_SIZE = 3800  # Telegram limit (4096) minus header and marker overhead
QUESTION_PREVIEW_CHARS = 300
MESSAGE_DELAY_S = 0.3  # Pause between chunks so clients keep display order

# Hook entrypoints
HOOK_STDIN_TIMEOUT_S = 2.0

# Legacy token mode
TOKEN_LENGTH = 8
TOKEN_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
TOKEN_SESSION_TTL_S = 24 * 60 * 60
LEGACY_CALLBACK_PREFIXES = ("personal:", "group:", "session:")

# tmux
DEFAULT_TMUX_SESSION = "claude-code"
INJECT_SUBMIT_DELAY_S = 0.1
PANE_SAMPLE_LINES = 200

# Webhook server
DEFAULT_WEBHOOK_HOST = "0.0.0.0"
DEFAULT_WEBHOOK_PORT = 3001

# Transcript extraction
TOOL_RESULT_PREVIEW_CHARS = 500
