from __future__ import annotations

# Pane commands that mean "no agent is running, only the login shell".
SUPPORTED_SHELLS = ("bash", "zsh", "sh", "fish", "tcsh", "ksh", "dash")

COMMAND_START_TIMEOUT_S = 60.0
READY_TIMEOUT_S = 30.0
NOTIFY_DELAY_S = 0.5

# Minimum settle time before the propulsion nudge when prompt detection fails.
PROPULSION_FALLBACK_FLOOR_MS = 10000

COPILOT_READY_PROMPT_PREFIX = "❯"
COPILOT_READY_DELAY_MS = 3000
COPILOT_FALLBACK_FLOOR_MS = 10000

SESSION_ID_ENV_FALLBACK = "CLAUDE_SESSION_ID"
NO_DAEMON_ENV = "BEADS_NO_DAEMON"

DEFAULT_AGENT = "claude"
