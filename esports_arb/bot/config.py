"""
Configuration loader for the trading bot.

Reads a YAML config and injects secrets and risk overrides from
environment variables.
"""

import os

import yaml
from dotenv import load_dotenv

load_dotenv()

# env var -> (section key, cast)
_TRADING_OVERRIDES = {
    "MIN_PROFIT_THRESHOLD": ("min_profit_threshold", float),
    "MAX_POSITION_SIZE": ("max_position_size", float),
    "MAX_DAILY_RISK": ("max_daily_risk", float),
    "STOP_LOSS_TRIGGER": ("stop_loss_trigger", int),
    "COOLDOWN_MINUTES": ("cooldown_minutes", float),
}


def load_config(config_path: str = "config.yaml") -> dict:
    """
    Load configuration from YAML file.

    Injects PANDASCORE_API_KEY into pandascore.api_key automatically and
    lets the trading limits be overridden from the environment.
    """
    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    # Inject API key from environment
    if "pandascore" in config:
        api_key = os.getenv("PANDASCORE_API_KEY") or config["pandascore"].get("api_key")
        if not api_key:
            raise ValueError("PANDASCORE_API_KEY not found in environment")
        config["pandascore"]["api_key"] = api_key

    trading = config.setdefault("trading", {}) or {}
    config["trading"] = trading
    for env_name, (key, cast) in _TRADING_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw:
            try:
                trading[key] = cast(raw)
            except ValueError:
                raise ValueError(f"{env_name} must be a number, got {raw!r}") from None

    return config
