"""agent/turn_limits.py - Central turn limits registry.

Every agent loop limit in the codebase lives here as a named constant.
Config.json overrides via ``"turn_limits"``.

Public API:
    get_limit(name)  - lookup (int), KeyError on typo
    reload()         - re-read config overrides
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Default limits
# ---------------------------------------------------------------------------

DEFAULTS: dict[str, int] = {
    # Orchestrator main loop
    "orchestrator.max_iterations":       20,
    # Sub-agent loop (delegate_to_subagent)
    "sub_agent.max_iterations":          10,
    # Live editor reply wait per deferred tool call (milliseconds)
    "editor.reply_timeout_ms":        10000,
    # Pending-request broker
    "broker.max_pending":               100,
    "broker.max_age_ms":              60000,
    "broker.sweep_interval_ms":       30000,
    # validate_and_retry helper
    "tool_retry.max_attempts":            3,
    "tool_retry.backoff_ms":           1000,
}

# ---------------------------------------------------------------------------
# Runtime state - overrides from config.json
# ---------------------------------------------------------------------------

_overrides: dict[str, int] = {}


def reload() -> None:
    """Re-read config.json overrides for turn limits.

    Called by ``config.reload_config()`` and at import time.
    """
    global _overrides
    import config
    _overrides = config.get("turn_limits", {})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_limit(name: str) -> int:
    """Return the effective turn limit for *name*.

    Raises ``KeyError`` if *name* is not in DEFAULTS (catches typos).
    """
    if name not in DEFAULTS:
        raise KeyError(f"Unknown turn limit: {name!r}")
    override = _overrides.get(name)
    if override is not None:
        return int(override)
    return DEFAULTS[name]


# ---------------------------------------------------------------------------
# Initialize overrides at import time
# ---------------------------------------------------------------------------

reload()
