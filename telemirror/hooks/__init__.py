"""Claude Code hook entrypoints (Stop/Notification and PostToolUse)."""
