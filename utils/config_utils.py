import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_CONFIG = {
    "SMS_RECIPIENTS": [
        {"phone": "+94763288750", "carrier": "dialog", "name": "Manager"},
        {"phone": "+94702492715", "carrier": "mobitel", "name": "Security"},
    ],
    "CHAT_RECIPIENTS": [
        {"phone": "94771234567", "api_key": "YOUR_API_KEY_1", "name": "Manager"},
        {"phone": "94777654321", "api_key": "YOUR_API_KEY_2", "name": "Security Team"},
    ],
    "SMS_CARRIER_DOMAINS": {
        "dialog": "sms.dialog.lk",
        "mobitel": "sms.mobitel.lk",
        "hutch": "sms.hutch.lk",
        "airtel": "sms.airtel.lk",
    },
    "DEFAULT_SMS_CARRIER": "dialog",
    "SMS_COUNTRY_CODE": "+94",
}

# Path to the dynamic configuration file
DYNAMIC_CONFIG_PATH = Path(__file__).parent.parent / "data" / "config.json"


def load_dynamic_config(path: Optional[Path] = None):
    """Load dynamic configuration (alert recipients, carrier table) from JSON file."""
    path = path or DYNAMIC_CONFIG_PATH
    if not path.exists():
        save_dynamic_config(DEFAULT_CONFIG, path)
        return dict(DEFAULT_CONFIG)

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"⚠️ Error loading dynamic config {path}: {e}")
        return dict(DEFAULT_CONFIG)

    # Ensure all default keys exist
    updated = False
    for k, v in DEFAULT_CONFIG.items():
        if k not in data:
            data[k] = v
            updated = True
    if updated:
        save_dynamic_config(data, path)
    return data


def save_dynamic_config(config_data, path: Optional[Path] = None):
    """Save dynamic configuration to JSON file."""
    path = path or DYNAMIC_CONFIG_PATH
    # Ensure data directory exists
    path.parent.mkdir(exist_ok=True)

    try:
        with open(path, "w") as f:
            json.dump(config_data, f, indent=4)
        return True
    except OSError as e:
        logger.warning(f"⚠️ Error saving dynamic config {path}: {e}")
        return False


def update_config_value(key, value, path: Optional[Path] = None):
    """Update a specific configuration value."""
    config = load_dynamic_config(path)
    config[key] = value
    return save_dynamic_config(config, path)
