"""
Black-Scholes Options Pricing Model for Indian Markets
Cumulative normal distribution, European call/put valuation and put-call parity
Integrates with the project configuration for default rates and dividend yields
"""

import logging
from dataclasses import dataclass
from math import log, sqrt, exp, pi, isfinite
from typing import Dict, Optional

import numpy as np
import pandas as pd

from config.settings import get_config, Config

logger = logging.getLogger(__name__)


class InvalidInputError(ValueError):
    """Raised when pricing inputs violate the model's preconditions"""
    pass


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class OptionQuoteInput:
    """
    Market snapshot for a single option

    Attributes:
        spot: Current price of the underlying (> 0)
        strike: Strike price of the option (> 0)
        time_to_expiry_years: Time to expiry in years (0 means expired)
        risk_free_rate: Annual risk-free rate (e.g. 0.065 for the RBI repo rate)
        volatility: Annual volatility as a decimal (0.15 for 15%)
        dividend_yield: Annual continuous dividend yield (0 for NIFTY)
    """
    spot: float
    strike: float
    time_to_expiry_years: float
    risk_free_rate: float
    volatility: float
    dividend_yield: float = 0.0

    @property
    def is_degenerate(self) -> bool:
        """True when the option must be valued at intrinsic value"""
        return self.time_to_expiry_years <= 0 or self.volatility == 0


@dataclass(frozen=True)
class OptionPrice:
    """Theoretical call and put values at one strike"""
    call_value: float
    put_value: float


# =============================================================================
# CORE MATHEMATICAL FUNCTIONS
# =============================================================================

# Abramowitz and Stegun 7.1.26, max absolute error ~1.5e-7
_ERF_A1 = 0.254829592
_ERF_A2 = -0.284496736
_ERF_A3 = 1.421413741
_ERF_A4 = -1.453152027
_ERF_A5 = 1.061405429
_ERF_P = 0.3275911

_SQRT_2 = sqrt(2.0)
_INV_SQRT_2PI = 1.0 / sqrt(2.0 * pi)


def erf(x: float) -> float:
    """
    Rational approximation to the error function

    Odd by construction, so erf(0) == 0 and erf(-x) == -erf(x) exactly.
    exp(-x*x) underflows to 0 for |x| beyond ~27, which leaves erf = +/-1.
    """
    if x > 0:
        sign = 1.0
    elif x < 0:
        sign = -1.0
    else:
        return 0.0

    x = abs(x)
    t = 1.0 / (1.0 + _ERF_P * x)
    poly = ((((_ERF_A5 * t + _ERF_A4) * t + _ERF_A3) * t + _ERF_A2) * t + _ERF_A1) * t
    return sign * (1.0 - poly * exp(-x * x))


def normal_cdf(x: float) -> float:
    """
    Cumulative standard normal distribution N(x)

    Financial Meaning: N(d1) is the hedge ratio of a call, N(d2) the
    risk-neutral probability that the call finishes in-the-money.

    Uses the erf approximation above, trading ~1e-7 accuracy for speed.
    Callers needing more precision should substitute scipy.stats.norm.cdf.

    Args:
        x: Any finite real

    Returns:
        Probability in [0, 1]; normal_cdf(0) == 0.5 exactly
    """
    return 0.5 * (1.0 + erf(x / _SQRT_2))


def normal_pdf(x: float) -> float:
    """Standard normal density phi(x)"""
    return _INV_SQRT_2PI * exp(-0.5 * x * x)


def validate_inputs(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> None:
    """
    Check model preconditions before any log or division is attempted

    Raises:
        InvalidInputError: non-finite input, spot/strike <= 0 or volatility < 0
    """
    for name, value in (('spot', S), ('strike', K), ('time_to_expiry', T),
                        ('risk_free_rate', r), ('volatility', sigma), ('dividend_yield', q)):
        if not isinstance(value, (int, float, np.number)) or not isfinite(value):
            raise InvalidInputError(f"Invalid {name}: {value!r}. Must be a finite number.")
    if S <= 0:
        raise InvalidInputError(f"Invalid spot price: {S}. Must be positive.")
    if K <= 0:
        raise InvalidInputError(f"Invalid strike price: {K}. Must be positive.")
    if sigma < 0:
        raise InvalidInputError(f"Invalid volatility: {sigma}. Must not be negative.")


def calculate_d1(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    Calculate d1 parameter for Black-Scholes formula

    Formula: d1 = [ln(S/K) + (r - q + sigma^2/2)T] / (sigma*sqrt(T))

    Only defined for T > 0 and sigma > 0; callers handle the degenerate branch.
    """
    if T <= 0 or sigma <= 0:
        raise InvalidInputError("d1 requires positive time to expiry and volatility")

    moneyness = log(S / K)
    drift_term = (r - q + 0.5 * sigma * sigma) * T
    volatility_term = sigma * sqrt(T)

    return (moneyness + drift_term) / volatility_term


def calculate_d2(d1: float, sigma: float, T: float) -> float:
    """d2 = d1 - sigma*sqrt(T)"""
    return d1 - sigma * sqrt(T)


def intrinsic_value(S: float, K: float, is_call: bool) -> float:
    """Payoff if exercised now: max(0, S-K) for calls, max(0, K-S) for puts"""
    return max(0.0, S - K) if is_call else max(0.0, K - S)


# =============================================================================
# CORE BLACK-SCHOLES PRICING FUNCTIONS
# =============================================================================

def price_call(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    European call value

    Formula: C = S*e^(-qT)*N(d1) - K*e^(-rT)*N(d2), floored at 0.
    Expired (T <= 0) or zero-volatility options are worth intrinsic value.

    Raises:
        InvalidInputError: see validate_inputs
    """
    validate_inputs(S, K, T, r, sigma, q)
    if T <= 0 or sigma == 0:
        return intrinsic_value(S, K, True)

    d1 = calculate_d1(S, K, T, r, sigma, q)
    d2 = calculate_d2(d1, sigma, T)

    call_price = S * exp(-q * T) * normal_cdf(d1) - K * exp(-r * T) * normal_cdf(d2)
    return max(0.0, call_price)


def price_put(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    European put value

    Formula: P = K*e^(-rT)*N(-d2) - S*e^(-qT)*N(-d1), floored at 0.
    """
    validate_inputs(S, K, T, r, sigma, q)
    if T <= 0 or sigma == 0:
        return intrinsic_value(S, K, False)

    d1 = calculate_d1(S, K, T, r, sigma, q)
    d2 = calculate_d2(d1, sigma, T)

    put_price = K * exp(-r * T) * normal_cdf(-d2) - S * exp(-q * T) * normal_cdf(-d1)
    return max(0.0, put_price)


def price_option(quote: OptionQuoteInput, is_call: bool) -> float:
    """Price a call or a put from an OptionQuoteInput"""
    pricer = price_call if is_call else price_put
    return pricer(quote.spot, quote.strike, quote.time_to_expiry_years,
                  quote.risk_free_rate, quote.volatility, quote.dividend_yield)


def price_pair(quote: OptionQuoteInput) -> OptionPrice:
    """Price both legs at one strike"""
    return OptionPrice(call_value=price_option(quote, True),
                       put_value=price_option(quote, False))


def verify_put_call_parity(call_price: float, put_price: float, S: float, K: float,
                           T: float, r: float, q: float = 0.0,
                           tolerance: float = 1e-6) -> Dict[str, float]:
    """
    Verify put-call parity: C - P = S*e^(-qT) - K*e^(-rT)

    The tolerance is relative to S + K, which bounds the error introduced by
    the normal CDF approximation and the zero floor.

    Returns:
        Dictionary with both sides, their difference and a pass flag
    """
    left_side = call_price - put_price
    right_side = S * exp(-q * T) - K * exp(-r * T)
    parity_difference = abs(left_side - right_side)

    return {
        'call_minus_put': left_side,
        'pv_underlying_minus_pv_strike': right_side,
        'parity_difference': parity_difference,
        'parity_holds': parity_difference <= tolerance * (S + K)
    }


def parse_option_type(option_type: str) -> bool:
    """Map NSE ('CE'/'PE') or plain ('call'/'put') labels to is_call"""
    label = str(option_type).strip().upper()
    if label in ('CE', 'CALL', 'C'):
        return True
    if label in ('PE', 'PUT', 'P'):
        return False
    raise InvalidInputError(f"Invalid option type: {option_type}. Use 'CE' or 'PE'.")


# =============================================================================
# BLACK-SCHOLES PRICING ENGINE (WRAPPER CLASS)
# =============================================================================

class IndianBlackScholesEngine:
    """
    Black-Scholes pricing engine for Indian options markets

    Features:
    - Default RBI repo rate and per-symbol dividend yields from config
    - Detailed single-option output (d1, d2, intrinsic and time value)
    - Batch pricing for DataFrame operations
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    def get_dividend_yield(self, symbol: str) -> float:
        """
        Dividend yield for a symbol

        Index options (NIFTY, BANKNIFTY) carry no dividend yield.
        """
        return self.config.model.dividend_yield_for(symbol)

    def price_single_option(self,
                            spot_price: float,
                            strike_price: float,
                            time_to_expiry: float,
                            volatility: float,
                            option_type: str,
                            risk_free_rate: Optional[float] = None,
                            symbol: str = 'NIFTY') -> Dict[str, float]:
        """
        Price a single option with full details

        Args:
            spot_price: Current price of underlying
            strike_price: Strike price of option
            time_to_expiry: Time to expiry in years
            volatility: Annual volatility
            option_type: 'CE' for call, 'PE' for put
            risk_free_rate: Annual rate, config default when None
            symbol: Underlying symbol for dividend yield

        Returns:
            Dictionary with pricing results and details
        """
        is_call = parse_option_type(option_type)
        if risk_free_rate is None:
            risk_free_rate = self.config.model.default_risk_free_rate
        dividend_yield = self.get_dividend_yield(symbol)

        quote = OptionQuoteInput(spot_price, strike_price, time_to_expiry,
                                 risk_free_rate, volatility, dividend_yield)
        option_price = price_option(quote, is_call)
        intrinsic = intrinsic_value(spot_price, strike_price, is_call)

        if quote.is_degenerate:
            d1 = d2 = float('nan')
        else:
            d1 = calculate_d1(spot_price, strike_price, time_to_expiry,
                              risk_free_rate, volatility, dividend_yield)
            d2 = calculate_d2(d1, volatility, time_to_expiry)

        result = {
            'option_price': option_price,
            'spot_price': spot_price,
            'strike_price': strike_price,
            'time_to_expiry': time_to_expiry,
            'volatility': volatility,
            'risk_free_rate': risk_free_rate,
            'dividend_yield': dividend_yield,
            'option_type': 'CE' if is_call else 'PE',
            'symbol': symbol,
            'd1': d1,
            'd2': d2,
            'moneyness': spot_price / strike_price,
            'intrinsic_value': intrinsic,
            'time_value': max(0.0, option_price - intrinsic),
        }

        logger.debug("Priced %s %s %s at %.4f", symbol, strike_price, result['option_type'], option_price)
        return result

    def price_options_dataframe(self, options_df: pd.DataFrame) -> pd.DataFrame:
        """
        Price multiple options from a DataFrame

        Args:
            options_df: DataFrame with columns Spot_Price, Strike, Time_to_Expiry,
                       Volatility, Option_Type and optionally Risk_Free_Rate, Symbol

        Returns:
            Copy of the DataFrame with BS_Price, Intrinsic_Value, Time_Value,
            d1 and d2 columns; rows that fail to price hold NaN
        """
        required_columns = ['Spot_Price', 'Strike', 'Time_to_Expiry', 'Volatility', 'Option_Type']

        missing_columns = [col for col in required_columns if col not in options_df.columns]
        if missing_columns:
            raise InvalidInputError(f"Missing required columns: {missing_columns}")

        result_df = options_df.copy()
        output_columns = ['BS_Price', 'Risk_Free_Rate_Used', 'Dividend_Yield',
                          'Intrinsic_Value', 'Time_Value', 'd1', 'd2']
        for col in output_columns:
            result_df[col] = np.nan

        failures = 0
        for idx, row in result_df.iterrows():
            rate = row.get('Risk_Free_Rate', None)
            if rate is not None and pd.isna(rate):
                rate = None
            try:
                pricing_result = self.price_single_option(
                    row['Spot_Price'], row['Strike'], row['Time_to_Expiry'],
                    row['Volatility'], row['Option_Type'],
                    risk_free_rate=rate, symbol=row.get('Symbol', 'NIFTY')
                )
            except InvalidInputError as e:
                failures += 1
                logger.warning("Error pricing option at index %s: %s", idx, e)
                continue

            result_df.loc[idx, 'BS_Price'] = pricing_result['option_price']
            result_df.loc[idx, 'Risk_Free_Rate_Used'] = pricing_result['risk_free_rate']
            result_df.loc[idx, 'Dividend_Yield'] = pricing_result['dividend_yield']
            result_df.loc[idx, 'Intrinsic_Value'] = pricing_result['intrinsic_value']
            result_df.loc[idx, 'Time_Value'] = pricing_result['time_value']
            result_df.loc[idx, 'd1'] = pricing_result['d1']
            result_df.loc[idx, 'd2'] = pricing_result['d2']

        logger.info("Priced %d options using Black-Scholes model (%d failed)", len(result_df), failures)
        return result_df
