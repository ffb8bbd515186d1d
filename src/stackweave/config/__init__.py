"""
Configuration loading for Stackweave projects.
"""

from stackweave.config.loader import DEFAULTS, Config, load_config
from stackweave.config.resolver import resolve_config

__all__ = ["Config", "DEFAULTS", "load_config", "resolve_config"]
