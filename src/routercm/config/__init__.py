"""
Configuration Module

YAML configuration loading and validation.
"""
from .loader import Config, load_config, save_config

__all__ = [
    "Config",
    "load_config",
    "save_config"
]
