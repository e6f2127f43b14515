"""
Configuration package for Indian Options Analytics
"""

from .settings import get_config, reload_config, Config, ConfigurationError, DEFAULT_CONFIG

__all__ = ['get_config', 'reload_config', 'Config', 'ConfigurationError', 'DEFAULT_CONFIG']
