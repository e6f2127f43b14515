"""
Models package for Indian Options Analytics
"""

from .black_scholes import (
    IndianBlackScholesEngine,
    InvalidInputError,
    OptionPrice,
    OptionQuoteInput,
    normal_cdf,
    price_option,
    price_pair,
)
from .greeks import GreeksResult, GreeksCalculationError, compute_greeks
from .volatility import (
    NumpyNoiseSource,
    VolatilityCalculationError,
    VolatilitySmile,
    estimate_iv,
    solve_implied_volatility,
)

__all__ = [
    'IndianBlackScholesEngine',
    'InvalidInputError',
    'OptionPrice',
    'OptionQuoteInput',
    'normal_cdf',
    'price_option',
    'price_pair',
    'GreeksResult',
    'GreeksCalculationError',
    'compute_greeks',
    'NumpyNoiseSource',
    'VolatilityCalculationError',
    'VolatilitySmile',
    'estimate_iv',
    'solve_implied_volatility',
]
