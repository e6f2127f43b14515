"""
Market helpers for NSE derivatives
Instrument catalogue, strike ladders, moneyness buckets, expiry and session
timing, and the RBI repo rate history
"""

import logging
from dataclasses import dataclass
from datetime import datetime, date
from typing import Dict, List, Optional, Union

import pandas as pd

from config.settings import Config, get_config
from models.black_scholes import InvalidInputError, parse_option_type
from data.chain import atm_strike

logger = logging.getLogger(__name__)

MARKET_TIMEZONE = 'Asia/Kolkata'
SESSION_OPEN = (9, 15)
SESSION_CLOSE = (15, 30)

DateLike = Union[str, date, datetime, pd.Timestamp]


@dataclass(frozen=True)
class InstrumentSpec:
    """Contract specification for an NSE underlying"""
    symbol: str
    lot_size: int
    tick_size: float
    strike_interval: float


def get_instrument(symbol: str, config: Optional[Config] = None) -> InstrumentSpec:
    """
    Look up an instrument in the configured catalogue

    Raises:
        InvalidInputError: unknown symbol
    """
    instruments = (config or get_config()).instruments
    key = symbol.upper()
    if key not in instruments:
        raise InvalidInputError(f"Unknown instrument: {symbol}. Known: {sorted(instruments)}")
    spec = instruments[key]
    return InstrumentSpec(
        symbol=key,
        lot_size=int(spec['lot_size']),
        tick_size=float(spec['tick_size']),
        strike_interval=float(spec['strike_interval']),
    )


def strike_interval_for_spot(spot: float) -> float:
    """Strike spacing by price band, for underlyings not in the catalogue"""
    if spot <= 0:
        raise InvalidInputError(f"Invalid spot price: {spot}. Must be positive.")
    if spot < 500:
        return 5.0
    if spot < 1000:
        return 10.0
    if spot < 5000:
        return 25.0
    if spot < 10000:
        return 50.0
    return 100.0


def generate_strike_ladder(spot: float,
                           strike_interval: Optional[float] = None,
                           strikes_each_side: Optional[int] = None,
                           config: Optional[Config] = None) -> List[float]:
    """
    Ascending strikes centred on the ATM strike

    The interval defaults to the price band of the spot and the ladder width
    to feed.strikes_each_side. Non-positive strikes are dropped, so a ladder
    near zero is one-sided.
    """
    if spot <= 0:
        raise InvalidInputError(f"Invalid spot price: {spot}. Must be positive.")
    if strikes_each_side is None:
        strikes_each_side = (config or get_config()).feed.strikes_each_side
    if strikes_each_side < 0:
        raise InvalidInputError(f"strikes_each_side cannot be negative: {strikes_each_side}")
    if strike_interval is None:
        interval = strike_interval_for_spot(spot)
    elif strike_interval <= 0:
        raise InvalidInputError(f"Strike interval must be positive, got {strike_interval}")
    else:
        interval = strike_interval

    atm = atm_strike(spot, interval)
    strikes = [atm + i * interval for i in range(-strikes_each_side, strikes_each_side + 1)]
    return [float(strike) for strike in strikes if strike > 0]


def round_to_tick(price: float, tick_size: float = 0.05) -> float:
    """Round a price to the exchange tick"""
    if tick_size <= 0:
        raise InvalidInputError(f"Tick size must be positive, got {tick_size}")
    return round(round(price / tick_size) * tick_size, 10)


def classify_moneyness(spot: float, strike: float, option_type: str) -> str:
    """
    Classify an option by spot/strike into delta-style buckets

    Returns one of Deep_ITM, ITM, ATM, OTM, Deep_OTM
    """
    if spot <= 0 or strike <= 0:
        raise InvalidInputError("Spot and strike must be positive")
    moneyness = spot / strike

    if parse_option_type(option_type):
        if moneyness >= 1.05:
            return 'Deep_ITM'
        elif moneyness >= 1.02:
            return 'ITM'
        elif moneyness >= 0.98:
            return 'ATM'
        elif moneyness >= 0.95:
            return 'OTM'
        else:
            return 'Deep_OTM'
    else:
        if moneyness <= 0.95:
            return 'Deep_ITM'
        elif moneyness <= 0.98:
            return 'ITM'
        elif moneyness <= 1.02:
            return 'ATM'
        elif moneyness <= 1.05:
            return 'OTM'
        else:
            return 'Deep_OTM'


def _to_market_time(value: DateLike) -> pd.Timestamp:
    stamp = pd.Timestamp(value)
    if stamp.tzinfo is None:
        return stamp.tz_localize(MARKET_TIMEZONE)
    return stamp.tz_convert(MARKET_TIMEZONE)


def time_to_expiry_years(expiry: DateLike,
                         now: DateLike,
                         days_per_year: int = 365,
                         expiry_time: str = '15:30') -> float:
    """
    Years between now and expiry, floored at 0

    A bare expiry date is taken to settle at the close of that session.
    Naive timestamps are read as India time.
    """
    expiry_stamp = pd.Timestamp(expiry)
    bare_date = (
        (isinstance(expiry, str) and len(expiry.strip()) <= 10)
        or (isinstance(expiry, date) and not isinstance(expiry, datetime))
    )
    if bare_date:
        expiry_stamp = pd.Timestamp(f"{expiry_stamp.date()} {expiry_time}")
    delta = _to_market_time(expiry_stamp) - _to_market_time(now)
    years = delta.total_seconds() / (days_per_year * 24 * 3600)
    return max(0.0, years)


def market_status(now: DateLike) -> str:
    """
    NSE equity derivatives session state at `now`

    Returns 'OPEN' between 09:15 and 15:30 on weekdays, 'PRE_OPEN' before
    09:15 on weekdays, otherwise 'CLOSED'. Exchange holidays are not modelled.
    """
    local = _to_market_time(now)
    if local.dayofweek >= 5:
        return 'CLOSED'

    minutes = local.hour * 60 + local.minute
    open_minutes = SESSION_OPEN[0] * 60 + SESSION_OPEN[1]
    close_minutes = SESSION_CLOSE[0] * 60 + SESSION_CLOSE[1]

    if open_minutes <= minutes <= close_minutes:
        return 'OPEN'
    return 'PRE_OPEN' if minutes < open_minutes else 'CLOSED'


def get_risk_free_rate(valuation_date: DateLike, config: Optional[Config] = None) -> float:
    """
    RBI repo rate in force on a date

    Uses the latest history entry on or before the date; dates before the
    first entry (or an empty history) get the configured default.
    """
    model = (config or get_config()).model
    history: Dict[str, float] = model.rate_history
    target = pd.Timestamp(valuation_date)
    if target.tzinfo is not None:
        target = target.tz_localize(None)

    best_rate = model.default_risk_free_rate
    best_date = None
    for rate_date, rate in history.items():
        effective = pd.Timestamp(rate_date)
        if effective <= target and (best_date is None or effective > best_date):
            best_date = effective
            best_rate = float(rate)

    return best_rate
