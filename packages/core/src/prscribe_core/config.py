import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "model": "openai",
    "models": {},  # per-provider model name overrides, e.g. {"openai": "gpt-4o-mini"}
    "language": "en",
    "cache_cap": 20,
    "recency_cap": 10,
    "store": "json",  # json | sqlite | memory
    "store_path": "~/.prscribe/cache.json",
    "github_domain": "github.com",
    "github_api_url": None,  # None = public GitHub; set for GitHub Enterprise
    "instruction_path": None,  # repository file whose text is added to chat prompts
}

LANGUAGE_LABELS: dict[str, str] = {
    "en": "English",
    "ja": "日本語",
    "ko": "한국어",
    "zh": "中文",
}


def load_config(config_path: str = ".prscribe.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prscribe.yml in the current directory
      3. CLI argument overrides

    Raises ValueError when a cap is not a positive integer.
    """
    config = {**DEFAULT_CONFIG, "models": dict(DEFAULT_CONFIG["models"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    for cap in ("cache_cap", "recency_cap"):
        value = config.get(cap)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValueError(f"{cap} must be a positive integer, got {value!r}")

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["gemini_api_key"] = os.environ.get("GEMINI_API_KEY")

    return config


def language_label(locale: str) -> str:
    """Return the prompt-facing name of ``locale``, defaulting to English."""
    return LANGUAGE_LABELS.get((locale or "en").split("-")[0].lower(), "English")
