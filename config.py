import json
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# Secrets stay in .env: ANTHROPIC_API_KEY, WORDPRESS_APP_PASSWORD, REDIS_URL

# User config - loaded from ~/.gutenberg-agent/config.json (primary)
# or project-root config.json (fallback).
CONFIG_PATH = Path.home() / ".gutenberg-agent" / "config.json"
_LOCAL_CONFIG_PATH = Path(__file__).resolve().parent / "config.json"
_user_config: dict = {}


def _load_config() -> dict:
    # Project-local config.json as base, user home config overlaid on top
    merged: dict = {}
    for path in (_LOCAL_CONFIG_PATH, CONFIG_PATH):
        if path is not None and path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    merged.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                pass
    return merged


def get(key: str, default=None):
    """Get a config value by dot-separated key. E.g. get('wordpress.timeout', 30)"""
    keys = key.split(".")
    val = _user_config
    for k in keys:
        if isinstance(val, dict):
            val = val.get(k)
        else:
            return default
    return val if val is not None else default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


_user_config = _load_config()


# ---- Data directory -----------------------------------------------------------
# Base directory for log files.
# Priority: GUTENBERG_AGENT_DIR env var > "data_dir" config key > ~/.gutenberg-agent

_data_dir: Optional[Path] = None


def get_data_dir() -> Path:
    """Return the resolved base data directory.

    Resolution order:
    1. ``GUTENBERG_AGENT_DIR`` environment variable (highest, useful for Docker)
    2. ``"data_dir"`` key in config.json
    3. ``~/.gutenberg-agent`` (default)
    """
    global _data_dir
    if _data_dir is not None:
        return _data_dir
    env_val = os.environ.get("GUTENBERG_AGENT_DIR")
    if env_val:
        _data_dir = Path(env_val).expanduser().resolve()
    else:
        configured = get("data_dir")
        if configured:
            _data_dir = Path(configured).expanduser().resolve()
        else:
            _data_dir = Path.home() / ".gutenberg-agent"
    return _data_dir


def _reset_data_dir() -> None:
    """Reset the cached data directory (for testing only)."""
    global _data_dir
    _data_dir = None


def get_api_key() -> str | None:
    """Return the Anthropic API key (``ANTHROPIC_API_KEY``)."""
    return os.getenv("ANTHROPIC_API_KEY")


# ---- Runtime -------------------------------------------------------------------
APP_ENV = os.getenv("APP_ENV", get("environment", "development"))
PORT = int(os.getenv("PORT", get("port", 3000)))

# ---- LLM -----------------------------------------------------------------------
MODEL = get("model", "claude-sonnet-4-5")
SUB_AGENT_MODEL = get("sub_agent_model") or MODEL
LLM_BASE_URL = os.getenv("ANTHROPIC_BASE_URL", get("base_url"))
LLM_TIMEOUT_MS = get("llm_timeout_ms", 300_000)
MAX_TOKENS = get("max_tokens", 8192)
SUB_AGENT_MAX_TOKENS = get("sub_agent_max_tokens", 4096)
THINKING_BUDGET_TOKENS = get("thinking_budget_tokens", 5000)

# ---- WordPress content API -----------------------------------------------------
# The application password is a secret and only read from the environment.
WORDPRESS_URL = os.getenv("WORDPRESS_URL", get("wordpress.url", ""))
WORDPRESS_USER = os.getenv("WORDPRESS_USER", get("wordpress.user", ""))
WORDPRESS_APP_PASSWORD = os.getenv("WORDPRESS_APP_PASSWORD", "")
WORDPRESS_TIMEOUT = get("wordpress.timeout", 30)

# ---- Cache ---------------------------------------------------------------------
REDIS_ENABLED = _env_flag("REDIS_ENABLED", get("redis.enabled", False))
REDIS_URL = os.getenv("REDIS_URL", get("redis.url", "redis://localhost:6379/0"))
CACHE_TTL = int(os.getenv("CACHE_TTL", get("redis.ttl", 3600)))

# ---- Tools ---------------------------------------------------------------------
# Pre-validated block templates searched by search_block_templates.
TEMPLATES_DIR = Path(get("templates_dir", Path(__file__).resolve().parent / "templates"))

# ---- Conversations -------------------------------------------------------------
CONVERSATION_MAX_AGE_HOURS = get("conversations.max_age_hours", 24)
CONVERSATION_SWEEP_SECONDS = get("conversations.sweep_seconds", 3600)

# ---- Planning ------------------------------------------------------------------
PLAN_MODE = get("plan_mode", False)


# ---- Setting descriptions ------------------------------------------------------
# Keys match config.json keys. Nested keys use dot notation.
CONFIG_DESCRIPTIONS: dict[str, str] = {
    "model": "Anthropic model used by the orchestrator.",
    "sub_agent_model": "Model used by delegated sub-agents. Defaults to 'model'.",
    "max_tokens": "Token ceiling per orchestrator model call.",
    "sub_agent_max_tokens": "Token ceiling per sub-agent model call.",
    "thinking_budget_tokens": "Budget for extended thinking when a request enables it.",
    "wordpress.url": "Base URL of the WordPress site (the /wp-json prefix is added automatically).",
    "wordpress.user": "WordPress user owning the application password.",
    "wordpress.timeout": "Timeout in seconds for content API requests.",
    "redis.enabled": "Cache block schemas, patterns and global styles in Redis.",
    "redis.ttl": "Cache entry lifetime in seconds.",
    "conversations.max_age_hours": "Idle conversations older than this are evicted.",
    "plan_mode": "Propose a task plan for multi-step requests before running tools.",
    "turn_limits": "Override agent loop limits. Keys are named limits (e.g. 'orchestrator.max_iterations'). See agent/turn_limits.py DEFAULTS for all limit names.",
}


def reload_config() -> None:
    """Re-read config from disk and reassign all module-level constants.

    Orchestrators built before the call keep their current gateway and
    limits; only objects built afterwards pick up the changes.
    """
    global _user_config
    global APP_ENV, PORT
    global \
        MODEL, \
        SUB_AGENT_MODEL, \
        LLM_BASE_URL, \
        LLM_TIMEOUT_MS, \
        MAX_TOKENS, \
        SUB_AGENT_MAX_TOKENS, \
        THINKING_BUDGET_TOKENS
    global WORDPRESS_URL, WORDPRESS_USER, WORDPRESS_APP_PASSWORD, WORDPRESS_TIMEOUT
    global REDIS_ENABLED, REDIS_URL, CACHE_TTL, TEMPLATES_DIR
    global CONVERSATION_MAX_AGE_HOURS, CONVERSATION_SWEEP_SECONDS, PLAN_MODE

    load_dotenv(override=True)

    _user_config = _load_config()
    _reset_data_dir()

    APP_ENV = os.getenv("APP_ENV", get("environment", "development"))
    PORT = int(os.getenv("PORT", get("port", 3000)))
    MODEL = get("model", "claude-sonnet-4-5")
    SUB_AGENT_MODEL = get("sub_agent_model") or MODEL
    LLM_BASE_URL = os.getenv("ANTHROPIC_BASE_URL", get("base_url"))
    LLM_TIMEOUT_MS = get("llm_timeout_ms", 300_000)
    MAX_TOKENS = get("max_tokens", 8192)
    SUB_AGENT_MAX_TOKENS = get("sub_agent_max_tokens", 4096)
    THINKING_BUDGET_TOKENS = get("thinking_budget_tokens", 5000)
    WORDPRESS_URL = os.getenv("WORDPRESS_URL", get("wordpress.url", ""))
    WORDPRESS_USER = os.getenv("WORDPRESS_USER", get("wordpress.user", ""))
    WORDPRESS_APP_PASSWORD = os.getenv("WORDPRESS_APP_PASSWORD", "")
    WORDPRESS_TIMEOUT = get("wordpress.timeout", 30)
    REDIS_ENABLED = _env_flag("REDIS_ENABLED", get("redis.enabled", False))
    REDIS_URL = os.getenv("REDIS_URL", get("redis.url", "redis://localhost:6379/0"))
    CACHE_TTL = int(os.getenv("CACHE_TTL", get("redis.ttl", 3600)))
    TEMPLATES_DIR = Path(get("templates_dir", Path(__file__).resolve().parent / "templates"))
    CONVERSATION_MAX_AGE_HOURS = get("conversations.max_age_hours", 24)
    CONVERSATION_SWEEP_SECONDS = get("conversations.sweep_seconds", 3600)
    PLAN_MODE = get("plan_mode", False)

    # Reload turn limit overrides from config
    from agent.turn_limits import reload as _reload_turn_limits

    _reload_turn_limits()
