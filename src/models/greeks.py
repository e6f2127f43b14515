"""
Options Greeks Calculator for Indian Markets
Analytical Black-Scholes Greeks with the calendar-day theta convention
used by NSE option chain displays
"""

import logging
from dataclasses import dataclass
from math import sqrt, exp
from typing import Dict

import numpy as np
import pandas as pd

from config.settings import get_config
from models.black_scholes import (
    InvalidInputError,
    OptionQuoteInput,
    calculate_d1,
    calculate_d2,
    normal_cdf,
    normal_pdf,
    parse_option_type,
    validate_inputs,
)

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
VOL_POINT = 100.0


class GreeksCalculationError(InvalidInputError):
    """Custom exception for Greeks calculation errors"""
    pass


@dataclass(frozen=True)
class GreeksResult:
    """
    Option sensitivities

    Attributes:
        delta: dV/dS, in [0, 1] for calls and [-1, 0] for puts
        gamma: d2V/dS2, same for calls and puts
        theta: value change per calendar day
        vega: value change per 1 percentage point of volatility
        rho: value change per 1 percentage point of the risk-free rate
    """
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float = 0.0


def _boundary_greeks(S: float, K: float, is_call: bool) -> GreeksResult:
    """
    Limiting Greeks at expiry (or zero volatility)

    Delta is the step function of intrinsic value; an at-the-money option
    has zero delta. Every other Greek is 0.
    """
    if is_call:
        delta = 1.0 if S > K else 0.0
    else:
        delta = -1.0 if S < K else 0.0
    return GreeksResult(delta=delta, gamma=0.0, theta=0.0, vega=0.0, rho=0.0)


def compute_greeks(quote: OptionQuoteInput, is_call: bool, days_per_year: int = DAYS_PER_YEAR) -> GreeksResult:
    """
    Calculate delta, gamma, theta, vega and rho for one option

    Mathematical Derivation:
    delta_call = e^(-qT) N(d1)            delta_put = e^(-qT) (N(d1) - 1)
    gamma      = e^(-qT) phi(d1) / (S sigma sqrt(T))
    theta_call = [-S e^(-qT) phi(d1) sigma / (2 sqrt(T)) + q S e^(-qT) N(d1)
                  - r K e^(-rT) N(d2)] / 365
    theta_put  = [-S e^(-qT) phi(d1) sigma / (2 sqrt(T)) - q S e^(-qT) N(-d1)
                  + r K e^(-rT) N(-d2)] / 365
    vega       = S e^(-qT) phi(d1) sqrt(T) / 100
    rho_call   = K T e^(-rT) N(d2) / 100   rho_put = -K T e^(-rT) N(-d2) / 100

    Financial Interpretation:
    Theta is quoted per calendar day (divide by 365, not 252 trading days) to
    match exchange option chain displays. Vega and rho are quoted per one
    percentage point move, so a vega of 12.5 means Rs 12.50 per 1% of IV.

    Args:
        quote: Option market snapshot
        is_call: True for a call (CE), False for a put (PE)
        days_per_year: Day count used to convert annual theta to daily

    Returns:
        GreeksResult

    Raises:
        InvalidInputError: invalid spot, strike or volatility
    """
    S, K, T = quote.spot, quote.strike, quote.time_to_expiry_years
    r, sigma, q = quote.risk_free_rate, quote.volatility, quote.dividend_yield
    validate_inputs(S, K, T, r, sigma, q)

    if quote.is_degenerate:
        return _boundary_greeks(S, K, is_call)

    d1 = calculate_d1(S, K, T, r, sigma, q)
    d2 = calculate_d2(d1, sigma, T)
    sqrt_T = sqrt(T)
    phi_d1 = normal_pdf(d1)
    dividend_discount = exp(-q * T)
    rate_discount = exp(-r * T)

    gamma = dividend_discount * phi_d1 / (S * sigma * sqrt_T)
    vega = S * dividend_discount * phi_d1 * sqrt_T / VOL_POINT
    decay = -(S * dividend_discount * phi_d1 * sigma) / (2.0 * sqrt_T)

    if is_call:
        N_d1 = normal_cdf(d1)
        N_d2 = normal_cdf(d2)
        delta = dividend_discount * N_d1
        annual_theta = decay + q * S * dividend_discount * N_d1 - r * K * rate_discount * N_d2
        rho = K * T * rate_discount * N_d2 / VOL_POINT
    else:
        N_minus_d1 = normal_cdf(-d1)
        N_minus_d2 = normal_cdf(-d2)
        delta = -dividend_discount * N_minus_d1
        annual_theta = decay - q * S * dividend_discount * N_minus_d1 + r * K * rate_discount * N_minus_d2
        rho = -K * T * rate_discount * N_minus_d2 / VOL_POINT

    return GreeksResult(
        delta=delta,
        gamma=gamma,
        theta=annual_theta / days_per_year,
        vega=vega,
        rho=rho,
    )


def calculate_all_greeks(S: float, K: float, T: float, r: float, sigma: float,
                         option_type: str, q: float = 0.0) -> Dict[str, float]:
    """
    Calculate all Greeks for a single option in one function call

    Args:
        S, K, T, r, sigma: Option parameters
        option_type: 'CE' for call, 'PE' for put
        q: Dividend yield

    Returns:
        Dictionary with all Greeks values
    """
    is_call = parse_option_type(option_type)
    greeks = compute_greeks(OptionQuoteInput(S, K, T, r, sigma, q), is_call)

    return {
        'delta': greeks.delta,
        'gamma': greeks.gamma,
        'theta': greeks.theta,
        'vega': greeks.vega,
        'rho': greeks.rho,
        'option_type': 'CE' if is_call else 'PE',
    }


# =============================================================================
# DATAFRAME INTEGRATION
# =============================================================================

def calculate_greeks_dataframe(options_df: pd.DataFrame) -> pd.DataFrame:
    """
    Calculate Greeks for an entire options DataFrame

    Required DataFrame columns:
    - Spot_Price, Strike, Time_to_Expiry, Volatility, Option_Type
    - Risk_Free_Rate (optional, config default if missing)
    - Dividend_Yield (optional, 0 if missing)

    Returns:
        Copy of the DataFrame with Delta, Gamma, Theta, Vega and Rho columns;
        rows that fail hold NaN
    """
    required_columns = ['Spot_Price', 'Strike', 'Time_to_Expiry', 'Volatility', 'Option_Type']

    missing_columns = [col for col in required_columns if col not in options_df.columns]
    if missing_columns:
        raise GreeksCalculationError(f"Missing required columns: {missing_columns}")

    result_df = options_df.copy()
    greeks_columns = ['Delta', 'Gamma', 'Theta', 'Vega', 'Rho']
    for col in greeks_columns:
        result_df[col] = np.nan

    default_rate = get_config().model.default_risk_free_rate

    for idx, row in result_df.iterrows():
        r = row.get('Risk_Free_Rate', default_rate)
        q = row.get('Dividend_Yield', 0.0)
        try:
            greeks = calculate_all_greeks(
                row['Spot_Price'], row['Strike'], row['Time_to_Expiry'],
                default_rate if pd.isna(r) else r,
                row['Volatility'], row['Option_Type'],
                0.0 if pd.isna(q) else q
            )
        except InvalidInputError as e:
            logger.warning("Error calculating Greeks for row %s: %s", idx, e)
            continue

        result_df.loc[idx, 'Delta'] = greeks['delta']
        result_df.loc[idx, 'Gamma'] = greeks['gamma']
        result_df.loc[idx, 'Theta'] = greeks['theta']
        result_df.loc[idx, 'Vega'] = greeks['vega']
        result_df.loc[idx, 'Rho'] = greeks['rho']

    logger.info("Calculated Greeks for %d options", len(result_df))
    return result_df
