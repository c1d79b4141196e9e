"""Utility functions for dynocc."""

from dynocc.utils.config import DynoccConfig, get_config, load_config

__all__ = [
    "DynoccConfig",
    "get_config",
    "load_config",
]
