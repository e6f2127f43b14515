"""
Volatility models for Indian Options Markets

Two very different things live here and must not be confused:

- estimate_iv: a synthetic volatility-smile generator. It maps moneyness and
  time to expiry onto a stepped smile, the way the NSE dashboards fill their
  IV columns. It is NOT a calibration against market prices.
- solve_implied_volatility: a genuine Black-Scholes inversion with Brent's
  method, for callers that hold an observed market price.
"""

import logging
from dataclasses import dataclass, fields
from typing import Dict, Optional, Protocol

import numpy as np
from scipy.optimize import brentq

from config.settings import Config
from models.black_scholes import (
    InvalidInputError,
    OptionQuoteInput,
    intrinsic_value,
    price_option,
    validate_inputs,
)

logger = logging.getLogger(__name__)


class VolatilityCalculationError(InvalidInputError):
    """Custom exception for volatility calculation errors"""
    pass


# =============================================================================
# NOISE SOURCES
# =============================================================================

class NoiseSource(Protocol):
    """Anything that yields uniform draws in [0, 1)"""

    def next_float(self) -> float:
        ...


class ZeroNoise:
    """Noise source that always sits at the centre of the jitter band"""

    def next_float(self) -> float:
        return 0.5


class NumpyNoiseSource:
    """Seedable uniform noise backed by a numpy Generator"""

    def __init__(self, seed: Optional[int] = None):
        self._rng = np.random.default_rng(seed)

    def next_float(self) -> float:
        return float(self._rng.random())


def draw_noise(source: Optional[NoiseSource]) -> float:
    """Centre a [0, 1) draw on zero, giving the [-0.5, 0.5) jitter estimate_iv expects"""
    if source is None:
        return 0.0
    return source.next_float() - 0.5


# =============================================================================
# SYNTHETIC VOLATILITY SMILE
# =============================================================================

@dataclass(frozen=True)
class VolatilitySmile:
    """
    Parameters of the stepped smile, as decimals unless noted

    Attributes:
        base_vol: Volatility at the money with a long expiry
        near_wing: |moneyness - 1| beyond which near_wing_add applies
        near_wing_add: Step added outside the near wing
        far_wing: |moneyness - 1| beyond which far_wing_add also applies
        far_wing_add: Step added outside the far wing
        short_expiry_years: Expiries shorter than this get short_expiry_add
        short_expiry_add: Term-structure bump for short expiries
        jitter_amplitude: Width of the noise band (noise in [-0.5, 0.5] is scaled by this)
        floor_pct: Minimum returned IV, in percent
    """
    base_vol: float = 0.20
    near_wing: float = 0.05
    near_wing_add: float = 0.05
    far_wing: float = 0.10
    far_wing_add: float = 0.05
    short_expiry_years: float = 0.08
    short_expiry_add: float = 0.03
    jitter_amplitude: float = 0.04
    floor_pct: float = 10.0

    @classmethod
    def from_dict(cls, values: Dict[str, float]) -> 'VolatilitySmile':
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise VolatilityCalculationError(f"Unknown volatility smile parameters: {sorted(unknown)}")
        return cls(**{key: float(value) for key, value in values.items()})

    @classmethod
    def from_config(cls, config: Config) -> 'VolatilitySmile':
        return cls.from_dict(config.volatility_smile.as_dict())


DEFAULT_SMILE = VolatilitySmile()


def estimate_iv(moneyness: float,
                time_to_expiry_years: float,
                noise: float = 0.0,
                smile: Optional[VolatilitySmile] = None) -> float:
    """
    Synthetic implied volatility for a strike, in percent

    Starts from the base volatility, adds a step when moneyness leaves the
    near wing (0.95-1.05 by default) and another when it leaves the far wing
    (0.90-1.10), plus a bump for expiries under a month. With noise=0 the
    result is fully deterministic.

    Args:
        moneyness: strike / spot
        time_to_expiry_years: Time to expiry in years
        noise: Jitter draw, normally in [-0.5, 0.5] (see draw_noise)
        smile: Smile parameters, DEFAULT_SMILE when None

    Returns:
        Volatility in percent (20.0 means 20%), never below smile.floor_pct
    """
    if smile is None:
        smile = DEFAULT_SMILE
    if not np.isfinite(moneyness) or moneyness <= 0:
        raise VolatilityCalculationError(f"Invalid moneyness: {moneyness}. Must be positive.")
    if not np.isfinite(time_to_expiry_years):
        raise VolatilityCalculationError(f"Invalid time to expiry: {time_to_expiry_years}")
    if not np.isfinite(noise):
        raise VolatilityCalculationError(f"Invalid noise: {noise}")

    vol = smile.base_vol

    if moneyness < 1.0 - smile.near_wing or moneyness > 1.0 + smile.near_wing:
        vol += smile.near_wing_add
    if moneyness < 1.0 - smile.far_wing or moneyness > 1.0 + smile.far_wing:
        vol += smile.far_wing_add

    if time_to_expiry_years < smile.short_expiry_years:
        vol += smile.short_expiry_add

    vol += noise * smile.jitter_amplitude

    return max(vol * 100.0, smile.floor_pct)


# =============================================================================
# IMPLIED VOLATILITY EXTRACTION
# =============================================================================

def solve_implied_volatility(market_price: float,
                             quote: OptionQuoteInput,
                             is_call: bool,
                             lower: float = 1e-4,
                             upper: float = 5.0,
                             xtol: float = 1e-8) -> float:
    """
    Extract implied volatility from an observed option price

    Mathematical Approach: solves
    Market_Price = Black_Scholes(S, K, T, r, sigma_implied, q)
    for sigma with Brent's method on [lower, upper]. The volatility field of
    quote is ignored.

    Returns:
        Implied volatility as a decimal

    Raises:
        VolatilityCalculationError: expired option, price outside the
            no-arbitrage band, or no root in the bracket
    """
    validate_inputs(quote.spot, quote.strike, quote.time_to_expiry_years,
                    quote.risk_free_rate, 0.0, quote.dividend_yield)
    if not np.isfinite(market_price) or market_price <= 0:
        raise VolatilityCalculationError(f"Market price must be positive, got {market_price}")
    if quote.time_to_expiry_years <= 0:
        raise VolatilityCalculationError("Time to expiry must be positive")

    if market_price < intrinsic_value(quote.spot, quote.strike, is_call):
        raise VolatilityCalculationError("Market price below intrinsic value")

    def objective(sigma: float) -> float:
        trial = OptionQuoteInput(quote.spot, quote.strike, quote.time_to_expiry_years,
                                 quote.risk_free_rate, sigma, quote.dividend_yield)
        return price_option(trial, is_call) - market_price

    low_value = objective(lower)
    high_value = objective(upper)
    if low_value * high_value > 0:
        raise VolatilityCalculationError(
            f"Market price {market_price} not bracketed by volatility range [{lower}, {upper}]"
        )

    implied = brentq(objective, lower, upper, xtol=xtol)
    logger.debug("Implied volatility %.6f for price %.4f", implied, market_price)
    return implied
