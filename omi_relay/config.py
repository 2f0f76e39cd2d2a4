"""Configuration loading: defaults, optional config/config.json, then environment."""

import copy
import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = PROJECT_ROOT / "config" / "config.json"

WAKE_PHRASES = ["hey, omi,", "hey omi,", "hey, omi", "hey omi"]
HELP_KEYWORDS = ["help", "what can you do", "how do i use", "instructions", "commands"]
MEMORY_SAVE_PHRASES = ["save to memory", "remember this", "remember that"]
MEMORY_SEARCH_PHRASES = [
    "what do you remember about",
    "show me memories about",
    "search my memories",
    "search memory",
    "find in memory",
    "recall",
]

DEFAULT_CONFIG = {
    "server": {"port": 3000, "log_level": "INFO"},
    "triggers": {
        "wake_phrases": WAKE_PHRASES,
        "help_keywords": HELP_KEYWORDS,
        "policy": "word_boundary",
        "extraction": "segment",
        "memory_save_phrases": MEMORY_SAVE_PHRASES,
        "memory_search_phrases": MEMORY_SEARCH_PHRASES,
    },
    "openai": {
        "api_key": None,
        "model": "gpt-4",
        "max_tokens": 500,
        "temperature": 0.7,
        "timeout": 30.0,
        "system_prompt": "You are a helpful AI assistant. Provide clear, concise, and helpful responses.",
        "assistant_id": None,
        "embedding_model": "text-embedding-3-small",
    },
    "assistant": {"max_polls": 20, "initial_delay": 0.5, "max_delay": 4.0, "multiplier": 2.0},
    "web_search": {"endpoint": "https://api.duckduckgo.com/", "timeout": 5.0},
    "omi": {"app_id": None, "app_secret": None, "api_base": "https://api.omi.me", "timeout": 15.0},
    "context": {"max_turns": 5},
    "memory": {
        "enabled": False,
        "db_path": str(PROJECT_ROOT / "data" / "memories"),
        "table": "omi_memories",
        "search_limit": 5,
    },
    "rate_limit": {"max_requests": 10, "window_seconds": 60},
}

# (env var, section, key, cast)
ENV_OVERRIDES = [
    ("OPENAI_KEY", "openai", "api_key", str),
    ("OPENAI_MODEL", "openai", "model", str),
    ("OPENAI_ASSISTANT_ID", "openai", "assistant_id", str),
    ("OMI_APP_ID", "omi", "app_id", str),
    ("OMI_APP_SECRET", "omi", "app_secret", str),
    ("OMI_API_BASE", "omi", "api_base", str),
    ("MEMORY_DB_PATH", "memory", "db_path", str),
    ("MEMORY_ENABLED", "memory", "enabled", lambda v: v.strip().lower() in {"1", "true", "yes", "on"}),
    ("CONTEXT_MAX_TURNS", "context", "max_turns", int),
    ("RATE_LIMIT_MAX_REQUESTS", "rate_limit", "max_requests", int),
    ("RATE_LIMIT_WINDOW_SECONDS", "rate_limit", "window_seconds", int),
    ("PORT", "server", "port", int),
    ("LOG_LEVEL", "server", "log_level", str),
]

REQUIRED_CREDENTIALS = [
    ("OPENAI_KEY", "openai", "api_key"),
    ("OMI_APP_ID", "omi", "app_id"),
    ("OMI_APP_SECRET", "omi", "app_secret"),
]


def _deep_merge(base: dict, overlay: dict) -> dict:
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: Path | str | None = None, environ: dict | None = None) -> dict:
    """Build the runtime config dict.

    Order of precedence (lowest first): ``DEFAULT_CONFIG``, the JSON file at
    ``path`` (or ``$OMI_RELAY_CONFIG``, or ``config/config.json``), then
    environment variables. A ``.env`` file is loaded when ``environ`` is not
    given explicitly.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    cfg = copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(path or environ.get("OMI_RELAY_CONFIG") or CONFIG_PATH)
    if config_path.exists():
        with open(config_path) as f:
            _deep_merge(cfg, json.load(f))

    for env_name, section, key, cast in ENV_OVERRIDES:
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            cfg[section][key] = cast(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")

    return cfg


def missing_credentials(cfg: dict) -> list[str]:
    """Names of required credentials that are unset."""
    return [name for name, section, key in REQUIRED_CREDENTIALS if not cfg.get(section, {}).get(key)]
