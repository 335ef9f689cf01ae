"""Configuration management for loopwright."""

import os

# Path constants are defined here to avoid a circular import with utils
_RUNTIME_DIR = os.path.join(os.path.expanduser("~"), ".loopwright")
_CONFIG_FILE = os.path.join(_RUNTIME_DIR, "config")

# Default configuration template
_DEFAULT_CONFIG = """\
# loopwright configuration

# LiteLLM Model Configuration
# Format: provider/model_name (e.g. "anthropic/claude-3-5-sonnet-20241022")
LITELLM_MODEL=anthropic/claude-3-5-sonnet-20241022

# API Keys (set the key for your chosen provider)
ANTHROPIC_API_KEY=
OPENAI_API_KEY=
GEMINI_API_KEY=

# Optional settings
LITELLM_API_BASE=
LITELLM_DROP_PARAMS=true
LITELLM_TIMEOUT=600
TOOL_TIMEOUT=60
MAX_ITERATIONS=10

# Deliberation
DELIBERATION_ENABLED=false
DELIBERATION_CONFIDENCE_THRESHOLD=0.7
DELIBERATION_THOUGHT_TIMEOUT=30

# Sessions older than this are removed by `loopwright sessions cleanup`
SESSION_MAX_AGE_DAYS=30
"""


def _load_config(path: str) -> dict[str, str]:
    """Parse a KEY=VALUE config file, skipping comments and blank lines."""
    cfg: dict[str, str] = {}
    if not os.path.isfile(path):
        return cfg
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            # Strip inline comments (# ...) from the value
            if "#" in value:
                value = value[: value.index("#")]
            cfg[key.strip()] = value.strip()
    return cfg


def ensure_config() -> str:
    """Ensure ~/.loopwright/config exists, create with defaults if not.

    Returns:
        Path to the config file
    """
    if not os.path.exists(_CONFIG_FILE):
        os.makedirs(_RUNTIME_DIR, exist_ok=True)
        with open(_CONFIG_FILE, "w", encoding="utf-8") as f:
            f.write(_DEFAULT_CONFIG)
    return _CONFIG_FILE


_cfg = _load_config(_CONFIG_FILE)


def _flag(key: str, default: str) -> bool:
    return _cfg.get(key, default).lower() == "true"


class Config:
    """Configuration for loopwright.

    All configuration is centralized here. Access config values directly via Config.XXX.
    """

    # LiteLLM Model Configuration
    LITELLM_MODEL = _cfg.get("LITELLM_MODEL", "anthropic/claude-3-5-sonnet-20241022")

    # Common provider API keys (optional depending on provider)
    ANTHROPIC_API_KEY = _cfg.get("ANTHROPIC_API_KEY") or None
    OPENAI_API_KEY = _cfg.get("OPENAI_API_KEY") or None
    GEMINI_API_KEY = _cfg.get("GEMINI_API_KEY") or _cfg.get("GOOGLE_API_KEY") or None

    # Optional LiteLLM Configuration
    LITELLM_API_BASE = _cfg.get("LITELLM_API_BASE") or None
    LITELLM_DROP_PARAMS = _flag("LITELLM_DROP_PARAMS", "true")
    LITELLM_TIMEOUT = int(_cfg.get("LITELLM_TIMEOUT", "600"))

    # Per tool-call deadline; the run-wide deadline comes from RunConfig
    TOOL_TIMEOUT = float(_cfg.get("TOOL_TIMEOUT", "60"))

    # Agent Configuration
    MAX_ITERATIONS = int(_cfg.get("MAX_ITERATIONS", "10"))

    # Retry Configuration (LLM calls)
    RETRY_MAX_ATTEMPTS = int(_cfg.get("RETRY_MAX_ATTEMPTS", "3"))
    RETRY_INITIAL_DELAY = float(_cfg.get("RETRY_INITIAL_DELAY", "1.0"))
    RETRY_MAX_DELAY = float(_cfg.get("RETRY_MAX_DELAY", "60.0"))
    RETRY_EXPONENTIAL_BASE = 2.0
    RETRY_JITTER = True

    # Deliberation Configuration
    DELIBERATION_ENABLED = _flag("DELIBERATION_ENABLED", "false")
    DELIBERATION_CONFIDENCE_THRESHOLD = float(
        _cfg.get("DELIBERATION_CONFIDENCE_THRESHOLD", "0.7")
    )
    DELIBERATION_MAX_THOUGHT_DEPTH = int(_cfg.get("DELIBERATION_MAX_THOUGHT_DEPTH", "3"))
    DELIBERATION_REQUIRE_EXPLANATION = _flag("DELIBERATION_REQUIRE_EXPLANATION", "true")
    DELIBERATION_THOUGHT_TIMEOUT = float(_cfg.get("DELIBERATION_THOUGHT_TIMEOUT", "30"))
    DELIBERATION_ENABLE_REFLECTION = _flag("DELIBERATION_ENABLE_REFLECTION", "true")

    # Session Configuration
    SESSION_MAX_AGE_DAYS = int(_cfg.get("SESSION_MAX_AGE_DAYS", "30"))

    # Logging Configuration
    # Note: Logging is controlled via --verbose flag, files go to ~/.loopwright/logs/
    LOG_LEVEL = _cfg.get("LOG_LEVEL", "DEBUG").upper()

    @classmethod
    def get_api_key(cls, model: str):
        """Return the configured API key for a model's provider, if any."""
        provider = model.split("/", 1)[0].lower() if "/" in model else ""
        return {
            "anthropic": cls.ANTHROPIC_API_KEY,
            "openai": cls.OPENAI_API_KEY,
            "gemini": cls.GEMINI_API_KEY,
        }.get(provider)

    @classmethod
    def validate(cls):
        """Validate required configuration.

        Raises:
            ValueError: If required configuration is missing
        """
        if not cls.LITELLM_MODEL:
            raise ValueError(
                "LITELLM_MODEL not set. Please set it in ~/.loopwright/config.\n"
                "Example: LITELLM_MODEL=anthropic/claude-3-5-sonnet-20241022"
            )

        provider = cls.LITELLM_MODEL.split("/", 1)[0].lower() if "/" in cls.LITELLM_MODEL else ""
        if provider == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY not set. Please set it in ~/.loopwright/config.")
        if provider == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not set. Please set it in ~/.loopwright/config.")
        if provider == "gemini" and not cls.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY not set. Please set it in ~/.loopwright/config.")

        if not 0.0 <= cls.DELIBERATION_CONFIDENCE_THRESHOLD <= 1.0:
            raise ValueError("DELIBERATION_CONFIDENCE_THRESHOLD must be between 0.0 and 1.0.")
        if cls.TOOL_TIMEOUT <= 0:
            raise ValueError("TOOL_TIMEOUT must be positive.")
