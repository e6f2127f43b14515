"""
Option chain snapshot and chain-level aggregates
Max pain, put-call ratio and ATM implied volatility for one underlying/expiry
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from models.black_scholes import InvalidInputError

logger = logging.getLogger(__name__)

# Returned by compute_pcr when total call open interest is zero
PCR_UNDEFINED = math.inf

# Returned by compute_atm_iv, in percent, when the ATM strike carries no IV
DEFAULT_ATM_IV = 12.0

MAX_PAIN_METHODS = ('brute_force', 'prefix_sum')

FRAME_COLUMNS = ['Strike', 'Call_OI', 'Put_OI', 'Call_Volume', 'Put_Volume', 'Call_IV', 'Put_IV']


class ChainValidationError(InvalidInputError):
    """Raised for empty, unsorted or otherwise malformed chains"""
    pass


@dataclass(frozen=True)
class ChainRow:
    """
    One strike of the chain

    IVs are in percent and optional; a chain built from open interest alone
    is enough for max pain and PCR.
    """
    strike: float
    call_oi: float
    put_oi: float
    call_volume: float = 0.0
    put_volume: float = 0.0
    call_iv: Optional[float] = None
    put_iv: Optional[float] = None


@dataclass(frozen=True)
class ChainSnapshot:
    """Strikes of one underlying/expiry, unique and ascending"""
    rows: Tuple[ChainRow, ...]

    def __post_init__(self):
        rows = tuple(self.rows)
        object.__setattr__(self, 'rows', rows)

        previous = None
        for row in rows:
            if not math.isfinite(row.strike) or row.strike <= 0:
                raise ChainValidationError(f"Invalid strike in chain: {row.strike}")
            for name in ('call_oi', 'put_oi', 'call_volume', 'put_volume'):
                value = getattr(row, name)
                if not math.isfinite(value) or value < 0:
                    raise ChainValidationError(f"Invalid {name} at strike {row.strike}: {value}")
            for name in ('call_iv', 'put_iv'):
                value = getattr(row, name)
                if value is not None and (not math.isfinite(value) or value < 0):
                    raise ChainValidationError(f"Invalid {name} at strike {row.strike}: {value}")
            if previous is not None and row.strike <= previous:
                raise ChainValidationError(
                    f"Strikes must be unique and ascending, got {row.strike} after {previous}"
                )
            previous = row.strike

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    @property
    def strikes(self) -> np.ndarray:
        return np.array([row.strike for row in self.rows], dtype=float)

    @classmethod
    def from_rows(cls, rows: Iterable[ChainRow]) -> 'ChainSnapshot':
        return cls(tuple(rows))

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> 'ChainSnapshot':
        """
        Build a snapshot from a DataFrame with Strike, Call_OI and Put_OI
        columns; volume and IV columns are optional. Rows are sorted by strike.
        """
        missing_columns = [col for col in ('Strike', 'Call_OI', 'Put_OI') if col not in frame.columns]
        if missing_columns:
            raise ChainValidationError(f"Missing required columns: {missing_columns}")

        def optional(row, column):
            value = row.get(column)
            return None if value is None or pd.isna(value) else float(value)

        rows = []
        for _, row in frame.sort_values('Strike').iterrows():
            rows.append(ChainRow(
                strike=float(row['Strike']),
                call_oi=float(row['Call_OI']),
                put_oi=float(row['Put_OI']),
                call_volume=optional(row, 'Call_Volume') or 0.0,
                put_volume=optional(row, 'Put_Volume') or 0.0,
                call_iv=optional(row, 'Call_IV'),
                put_iv=optional(row, 'Put_IV'),
            ))
        return cls(tuple(rows))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(row.strike, row.call_oi, row.put_oi, row.call_volume, row.put_volume,
              row.call_iv, row.put_iv) for row in self.rows],
            columns=FRAME_COLUMNS,
        )

    def row_at(self, strike: float) -> Optional[ChainRow]:
        """Row whose strike matches within floating tolerance, or None"""
        for row in self.rows:
            if math.isclose(row.strike, strike, rel_tol=1e-9, abs_tol=1e-9):
                return row
        return None


@dataclass(frozen=True)
class ChainMetrics:
    """
    Chain-level risk metrics

    put_call_ratio is PCR_UNDEFINED when pcr_defined is False;
    atm_implied_vol is the fallback when atm_iv_is_fallback is True.
    """
    max_pain_strike: float
    put_call_ratio: float
    atm_implied_vol: float
    pcr_defined: bool = True
    atm_iv_is_fallback: bool = False
    total_call_oi: float = 0.0
    total_put_oi: float = 0.0
    total_volume: float = 0.0


# =============================================================================
# MAX PAIN
# =============================================================================

def writer_payout(chain: ChainSnapshot, k: float) -> float:
    """
    Aggregate writer payout scored at candidate strike k

    Call open interest at strikes above k and put open interest at strikes
    below k, each weighted by its distance from k. This is the scoring the
    NSE dashboards display as max pain.
    """
    payout = 0.0
    for row in chain:
        if row.strike > k:
            payout += row.call_oi * (row.strike - k)
        elif row.strike < k:
            payout += row.put_oi * (k - row.strike)
    return payout


def _max_pain_brute_force(chain: ChainSnapshot) -> float:
    best_strike = chain.rows[0].strike
    best_payout = math.inf

    # ascending scan with a strict comparison keeps the smallest strike on ties
    for candidate in chain:
        payout = writer_payout(chain, candidate.strike)
        if payout < best_payout:
            best_payout = payout
            best_strike = candidate.strike

    return best_strike


def _max_pain_prefix_sum(chain: ChainSnapshot) -> float:
    strikes = chain.strikes
    call_oi = np.array([row.call_oi for row in chain], dtype=float)
    put_oi = np.array([row.put_oi for row in chain], dtype=float)

    # open interest and OI-weighted strike strictly above / below each strike
    call_oi_above = np.cumsum(call_oi[::-1])[::-1] - call_oi
    call_weighted_above = np.cumsum((call_oi * strikes)[::-1])[::-1] - call_oi * strikes
    put_oi_below = np.cumsum(put_oi) - put_oi
    put_weighted_below = np.cumsum(put_oi * strikes) - put_oi * strikes

    payouts = (call_weighted_above - strikes * call_oi_above) + (strikes * put_oi_below - put_weighted_below)
    return float(strikes[int(np.argmin(payouts))])


def compute_max_pain(chain: ChainSnapshot, method: str = 'brute_force') -> float:
    """
    Strike at which aggregate option-writer payout is smallest

    For each candidate strike k the payout (see writer_payout) is
        sum over s > k of callOI(s) * (s - k)  +  sum over s < k of putOI(s) * (k - s)
    Ties go to the smallest strike.

    Args:
        chain: Chain snapshot
        method: 'brute_force' (O(n^2), exact ties) or 'prefix_sum' (O(n),
            numpy cumulative sums; ties can differ in the last floating bit)

    Raises:
        ChainValidationError: empty chain or unknown method
    """
    if len(chain) == 0:
        raise ChainValidationError("Cannot compute max pain for an empty chain")
    if method == 'brute_force':
        return _max_pain_brute_force(chain)
    if method == 'prefix_sum':
        return _max_pain_prefix_sum(chain)
    raise ChainValidationError(f"Unknown max pain method: {method}. Use one of {MAX_PAIN_METHODS}.")


# =============================================================================
# PUT-CALL RATIO
# =============================================================================

def compute_pcr(chain: ChainSnapshot) -> float:
    """
    Put-call ratio of open interest: sum(putOI) / sum(callOI)

    Returns PCR_UNDEFINED (+inf) when total call open interest is zero,
    including the all-zero chain, so no NaN ever reaches a display.
    """
    total_call_oi = sum(row.call_oi for row in chain)
    total_put_oi = sum(row.put_oi for row in chain)

    if total_call_oi == 0:
        logger.debug("Put-call ratio undefined: zero call open interest")
        return PCR_UNDEFINED
    return total_put_oi / total_call_oi


# =============================================================================
# ATM IMPLIED VOLATILITY
# =============================================================================

def infer_strike_interval(chain: ChainSnapshot) -> Optional[float]:
    """Smallest spacing between adjacent strikes, None for fewer than two strikes"""
    if len(chain) < 2:
        return None
    return float(np.min(np.diff(chain.strikes)))


def atm_strike(spot: float, strike_interval: float) -> float:
    """Spot rounded to the nearest multiple of the strike interval, halves up"""
    if strike_interval <= 0:
        raise ChainValidationError(f"Strike interval must be positive, got {strike_interval}")
    return math.floor(spot / strike_interval + 0.5) * strike_interval


def _atm_iv(chain: ChainSnapshot,
            spot: float,
            strike_interval: Optional[float],
            fallback: float) -> Tuple[float, bool]:
    if not math.isfinite(spot) or spot <= 0:
        raise InvalidInputError(f"Invalid spot price: {spot}. Must be positive.")

    if strike_interval is None:
        strike_interval = infer_strike_interval(chain)
    if strike_interval is None:
        if len(chain) == 0:
            return fallback, True
        # a single-strike chain is only ATM when it sits on the spot
        candidate = chain.rows[0] if math.isclose(chain.rows[0].strike, spot) else None
    else:
        candidate = chain.row_at(atm_strike(spot, strike_interval))

    if candidate is None or candidate.call_iv is None or candidate.put_iv is None:
        logger.debug("No ATM strike with IV near spot %.2f, using fallback %.2f%%", spot, fallback)
        return fallback, True
    return (candidate.call_iv + candidate.put_iv) / 2.0, False


def compute_atm_iv(chain: ChainSnapshot,
                   spot: float,
                   strike_interval: Optional[float] = None,
                   fallback: float = DEFAULT_ATM_IV) -> float:
    """
    Average of call and put IV at the at-the-money strike, in percent

    The ATM strike is spot rounded to the strike interval (inferred from the
    chain when not given). If that strike is missing from the chain, or its
    IVs are not populated, the named fallback DEFAULT_ATM_IV is returned
    instead of raising.
    """
    value, _ = _atm_iv(chain, spot, strike_interval, fallback)
    return value


def compute_chain_metrics(chain: ChainSnapshot,
                          spot: float,
                          strike_interval: Optional[float] = None,
                          max_pain_method: str = 'brute_force',
                          atm_iv_fallback: float = DEFAULT_ATM_IV) -> ChainMetrics:
    """Max pain, PCR and ATM IV for a chain, with the open interest totals"""
    pcr = compute_pcr(chain)
    atm_iv, is_fallback = _atm_iv(chain, spot, strike_interval, atm_iv_fallback)

    return ChainMetrics(
        max_pain_strike=compute_max_pain(chain, max_pain_method),
        put_call_ratio=pcr,
        atm_implied_vol=atm_iv,
        pcr_defined=math.isfinite(pcr),
        atm_iv_is_fallback=is_fallback,
        total_call_oi=float(sum(row.call_oi for row in chain)),
        total_put_oi=float(sum(row.put_oi for row in chain)),
        total_volume=float(sum(row.call_volume + row.put_volume for row in chain)),
    )
