"""
Utilities Package
Connection management, fees, configuration and logging
"""

from .rpc_manager import RPCManager
from .gas_calculator import GasCalculator
from .config_loader import load_config
from .logging_setup import configure_logging

__all__ = [
    'RPCManager',
    'GasCalculator',
    'load_config',
    'configure_logging'
]
