"""
Configuration management for Indian Options Analytics
Handles loading and validation of configuration parameters from config.yaml
"""

import copy
import logging
import warnings
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

import yaml


class ConfigurationError(Exception):
    """Custom exception for configuration-related errors"""
    pass


# Built-in defaults. config.yaml is merged on top of these, so a partial file
# (or no file at all) still produces a complete configuration.
DEFAULT_CONFIG: Dict[str, Any] = {
    'model': {
        'risk_free_rate': {
            'default': 0.065,
            'history': {
                '2022-01-01': 0.040,
                '2022-05-01': 0.050,
                '2022-08-01': 0.054,
                '2022-12-01': 0.059,
                '2023-01-01': 0.065,
                '2025-02-07': 0.0625,
                '2025-04-09': 0.060,
                '2025-06-06': 0.055,
            },
        },
        'dividend_yield': {
            'NIFTY': 0.0,
            'BANKNIFTY': 0.0,
            'FINNIFTY': 0.0,
            'MIDCPNIFTY': 0.0,
            'RELIANCE': 0.005,
            'TCS': 0.015,
            'HDFCBANK': 0.008,
        },
        'days_per_year': 365,
    },
    'volatility_smile': {
        'base_vol': 0.20,
        'near_wing': 0.05,
        'near_wing_add': 0.05,
        'far_wing': 0.10,
        'far_wing_add': 0.05,
        'short_expiry_years': 0.08,
        'short_expiry_add': 0.03,
        'jitter_amplitude': 0.04,
        'floor_pct': 10.0,
    },
    'chain': {
        'atm_iv_fallback': 12.0,
        'max_pain_method': 'brute_force',
        'prefix_sum_threshold': 200,
    },
    'instruments': {
        'NIFTY': {'lot_size': 25, 'tick_size': 0.05, 'strike_interval': 50},
        'BANKNIFTY': {'lot_size': 15, 'tick_size': 0.05, 'strike_interval': 100},
        'FINNIFTY': {'lot_size': 25, 'tick_size': 0.05, 'strike_interval': 50},
        'MIDCPNIFTY': {'lot_size': 50, 'tick_size': 0.05, 'strike_interval': 25},
        'RELIANCE': {'lot_size': 250, 'tick_size': 0.05, 'strike_interval': 20},
        'TCS': {'lot_size': 125, 'tick_size': 0.05, 'strike_interval': 50},
        'HDFCBANK': {'lot_size': 550, 'tick_size': 0.05, 'strike_interval': 20},
    },
    'margin': {
        'span_rate': 0.15,
        'exposure_rate': 0.05,
        'minimum_rate': 0.05,
    },
    'feed': {
        'refresh_interval': 15.0,
        'strikes_each_side': 10,
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': None,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with override merged in, recursing into dicts"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """
    Main configuration class for the options analytics project
    Loads parameters from config.yaml and provides structured access
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None, setup_logging: bool = True):
        """
        Initialize configuration with automatic YAML loading

        Args:
            config_path: Path to config.yaml file. If None, searches the
                project root and the current working directory.
            setup_logging: Whether to configure the root logger from the
                logging section.
        """
        possible_roots = [
            Path(__file__).parent.parent.parent,  # src/config/settings.py -> project_root
            Path.cwd(),
        ]

        self.PROJECT_ROOT = possible_roots[0]
        for root in possible_roots:
            if (root / "config.yaml").exists():
                self.PROJECT_ROOT = root
                break

        self.CONFIG_FILE = Path(config_path) if config_path else self.PROJECT_ROOT / "config.yaml"

        self._config_data: Dict[str, Any] = {}
        self._loaded = False

        self.load_configuration()

        if setup_logging:
            self._setup_logging()

    def load_configuration(self) -> None:
        """Load configuration from YAML file, falling back to built-in defaults"""
        if not self.CONFIG_FILE.exists():
            warnings.warn(f"Configuration file not found: {self.CONFIG_FILE}, using defaults")
            self._config_data = copy.deepcopy(DEFAULT_CONFIG)
            self._loaded = True
            return

        try:
            with open(self.CONFIG_FILE, 'r', encoding='utf-8') as file:
                file_data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Error parsing YAML configuration: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading configuration: {e}")

        if not isinstance(file_data, dict):
            raise ConfigurationError(f"Configuration root must be a mapping, got {type(file_data).__name__}")

        self._config_data = _deep_merge(DEFAULT_CONFIG, file_data)
        self._loaded = True

    def reload_configuration(self) -> None:
        """Reload configuration from file - useful during development"""
        self._config_data = {}
        self._loaded = False
        self.load_configuration()
        logging.info("Configuration reloaded")

    def _get_config_value(self, path: str, default: Any = None, required: bool = False) -> Any:
        """
        Helper method to get nested configuration values

        Args:
            path: Dot-separated path to configuration value (e.g., 'chain.atm_iv_fallback')
            default: Default value if path not found
            required: Whether to raise exception if value not found

        Returns:
            Configuration value or default
        """
        keys = path.split('.')
        value = self._config_data

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            if required:
                raise ConfigurationError(f"Required configuration parameter '{path}' not found")
            return default

    def _setup_logging(self) -> None:
        """Configure logging based on configuration parameters"""
        level_name = str(self.logging.level).upper()
        log_level = getattr(logging, level_name, None)
        if not isinstance(log_level, int):
            raise ConfigurationError(f"Invalid logging level: {self.logging.level}")

        handlers: List[logging.Handler] = [logging.StreamHandler()]
        if self.logging.file:
            log_file = Path(self.logging.file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))

        logging.basicConfig(
            level=log_level,
            format=self.logging.format,
            handlers=handlers
        )

    # =============================================================================
    # SECTION PROPERTIES
    # =============================================================================

    @property
    def model(self) -> 'ModelConfig':
        """Access to model parameters configuration"""
        return ModelConfig(self._config_data.get('model', {}))

    @property
    def volatility_smile(self) -> 'VolatilitySmileConfig':
        """Access to the synthetic volatility smile parameters"""
        return VolatilitySmileConfig(self._config_data.get('volatility_smile', {}))

    @property
    def chain(self) -> 'ChainConfig':
        """Access to chain aggregate configuration"""
        return ChainConfig(self._config_data.get('chain', {}))

    @property
    def instruments(self) -> Dict[str, Dict[str, float]]:
        """Instrument catalogue keyed by symbol"""
        return self._config_data.get('instruments', {})

    @property
    def margin(self) -> 'MarginConfig':
        """Access to margin estimate configuration"""
        return MarginConfig(self._config_data.get('margin', {}))

    @property
    def feed(self) -> 'FeedConfig':
        """Access to publisher configuration"""
        return FeedConfig(self._config_data.get('feed', {}))

    @property
    def logging(self) -> 'LoggingConfig':
        """Access to logging configuration"""
        return LoggingConfig(self._config_data.get('logging', {}))


# =============================================================================
# CONFIGURATION SECTION CLASSES
# =============================================================================

class ModelConfig:
    """Configuration for model parameters"""

    def __init__(self, config: Dict[str, Any]):
        self._config = config

    @property
    def risk_free_rate(self) -> Dict[str, Any]:
        return self._config.get('risk_free_rate', {'default': 0.065, 'history': {}})

    @property
    def default_risk_free_rate(self) -> float:
        return float(self.risk_free_rate.get('default', 0.065))

    @property
    def rate_history(self) -> Dict[str, float]:
        return self.risk_free_rate.get('history', {}) or {}

    @property
    def dividend_yield(self) -> Dict[str, float]:
        return self._config.get('dividend_yield', {})

    def dividend_yield_for(self, symbol: str) -> float:
        return float(self.dividend_yield.get(symbol.upper(), 0.0))

    @property
    def days_per_year(self) -> int:
        return int(self._config.get('days_per_year', 365))


class VolatilitySmileConfig:
    """Configuration for the synthetic volatility smile"""

    def __init__(self, config: Dict[str, Any]):
        self._config = config

    def as_dict(self) -> Dict[str, float]:
        return {key: float(value) for key, value in self._config.items()}


class ChainConfig:
    """Configuration for chain-level aggregates"""

    def __init__(self, config: Dict[str, Any]):
        self._config = config

    @property
    def atm_iv_fallback(self) -> float:
        return float(self._config.get('atm_iv_fallback', 12.0))

    @property
    def max_pain_method(self) -> str:
        return self._config.get('max_pain_method', 'brute_force')

    @property
    def prefix_sum_threshold(self) -> int:
        return int(self._config.get('prefix_sum_threshold', 200))


class MarginConfig:
    """Configuration for the simplified SPAN margin estimate"""

    def __init__(self, config: Dict[str, Any]):
        self._config = config

    @property
    def span_rate(self) -> float:
        return float(self._config.get('span_rate', 0.15))

    @property
    def exposure_rate(self) -> float:
        return float(self._config.get('exposure_rate', 0.05))

    @property
    def minimum_rate(self) -> float:
        return float(self._config.get('minimum_rate', 0.05))


class FeedConfig:
    """Configuration for the chain publisher"""

    def __init__(self, config: Dict[str, Any]):
        self._config = config

    @property
    def refresh_interval(self) -> float:
        return float(self._config.get('refresh_interval', 15.0))

    @property
    def strikes_each_side(self) -> int:
        return int(self._config.get('strikes_each_side', 10))


class LoggingConfig:
    """Configuration for logging settings"""

    def __init__(self, config: Dict[str, Any]):
        self._config = config

    @property
    def level(self) -> str:
        return self._config.get('level', 'INFO')

    @property
    def format(self) -> str:
        return self._config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    @property
    def file(self) -> Optional[str]:
        return self._config.get('file')


# =============================================================================
# GLOBAL CONFIGURATION INSTANCE
# =============================================================================

config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading it on first use

    Returns:
        Config: Global configuration instance
    """
    global config

    if config is None:
        config = Config()

    return config


def reload_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """
    Reload the global configuration instance

    Returns:
        Config: Newly loaded configuration instance
    """
    global config
    config = Config(config_path)
    return config
