"""
Trade ticket calculations for NSE options orders
Premium, breakeven and a simplified SPAN margin estimate
"""

from typing import Optional

from config.settings import Config, get_config
from models.black_scholes import InvalidInputError, parse_option_type


def premium_value(price: float, lots: int, lot_size: int) -> float:
    """Total premium for an order: price * lots * lot_size"""
    if lots <= 0 or lot_size <= 0:
        raise InvalidInputError(f"Lots and lot size must be positive, got {lots} x {lot_size}")
    if price < 0:
        raise InvalidInputError(f"Option price cannot be negative: {price}")
    return price * lots * lot_size


def breakeven(strike: float, premium: float, option_type: str) -> float:
    """
    Underlying price at expiry where the position neither gains nor loses

    Calls break even at strike + premium, puts at strike - premium. The
    level is the same for the buyer and the writer.
    """
    if strike <= 0:
        raise InvalidInputError(f"Invalid strike price: {strike}. Must be positive.")
    if premium < 0:
        raise InvalidInputError(f"Option price cannot be negative: {premium}")
    return strike + premium if parse_option_type(option_type) else strike - premium


def margin_requirement(spot: float,
                       price: float,
                       lots: int,
                       lot_size: int,
                       action: str = 'BUY',
                       config: Optional[Config] = None) -> float:
    """
    Funds blocked for an order

    Buyers pay the premium and nothing more. Writers post a simplified SPAN
    margin: (span_rate + exposure_rate) of the notional, less the premium
    received, never below minimum_rate of the notional.

    Args:
        spot: Current underlying price
        price: Option price per unit
        lots: Number of lots
        lot_size: Contracts per lot
        action: 'BUY' or 'SELL'
        config: Rates source, global config when None
    """
    if spot <= 0:
        raise InvalidInputError(f"Invalid spot price: {spot}. Must be positive.")

    premium = premium_value(price, lots, lot_size)
    side = action.strip().upper()
    if side == 'BUY':
        return premium
    if side != 'SELL':
        raise InvalidInputError(f"Invalid action: {action}. Use 'BUY' or 'SELL'.")

    margin = (config or get_config()).margin
    notional = spot * lots * lot_size
    span_margin = notional * margin.span_rate
    exposure_margin = notional * margin.exposure_rate

    return max(span_margin + exposure_margin - premium, notional * margin.minimum_rate)
