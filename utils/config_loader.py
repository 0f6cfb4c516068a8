"""
Config Loader
Reads config/client_config.json over built-in defaults and applies .env overrides
"""

import os
import copy
import json
from typing import Dict, Optional
from loguru import logger
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    'config',
    'client_config.json'
)

DEFAULT_CONFIG = {
    'network': {
        'rpc_url': 'http://127.0.0.1:8545',
        'request_timeout': 30
    },
    'retry': {
        'max_attempts': 4,
        'backoff_base_seconds': 0.5,
        'backoff_max_seconds': 8.0
    },
    'transactions': {
        'gas_multiplier': 1.2,
        'confirmation_timeout_seconds': 120,
        'poll_interval_seconds': 0.5,
        'max_gas_price_gwei': None,
        'priority_fee_gwei': None
    },
    'resolution': {
        'verify_selectors': True
    },
    'artifacts_dir': 'artifacts',
    'contracts': {}
}

# env var -> config path
ENV_OVERRIDES = {
    'RPC_URL': ('network', 'rpc_url'),
    'BOX_ADDRESS': ('contracts', 'Box', 'address'),
    'ARTIFACTS_DIR': ('artifacts_dir',),
}


def _merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_path(config: Dict, path, value):
    node = config
    for key in path[:-1]:
        node = node.setdefault(key, {})
    node[path[-1]] = value


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load client configuration

    Args:
        config_path: JSON file (default: config/client_config.json)

    Returns:
        Config dict with every default section present
    """
    path = config_path or DEFAULT_CONFIG_PATH
    config = copy.deepcopy(DEFAULT_CONFIG)

    if os.path.exists(path):
        with open(path, 'r') as f:
            config = _merge(config, json.load(f))
        logger.debug(f"Loaded config from {path}")
    elif config_path:
        raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        logger.warning(f"{path} not found, using defaults")

    for env_var, config_key in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            _set_path(config, config_key, value)
            logger.debug(f"{env_var} overrides {'.'.join(config_key)}")

    return config
