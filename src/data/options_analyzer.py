"""
Option chain analysis: combines a chain snapshot with the pricing models
Produces a per-strike pricing/Greeks table and chain-level risk metrics
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional

import pandas as pd

from config.settings import Config, get_config
from models.black_scholes import OptionQuoteInput, intrinsic_value, price_pair
from models.greeks import compute_greeks
from models.volatility import NoiseSource, VolatilitySmile, draw_noise, estimate_iv
from data.chain import ChainMetrics, ChainSnapshot, compute_chain_metrics
from data.market import classify_moneyness

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainAnalysis:
    """Per-strike table plus chain metrics for one snapshot"""
    frame: pd.DataFrame
    metrics: ChainMetrics
    spot: float
    time_to_expiry_years: float


class IndianOptionsAnalyzer:
    """
    Prices every strike of a chain and aggregates chain-level metrics
    """

    def __init__(self,
                 config: Optional[Config] = None,
                 smile: Optional[VolatilitySmile] = None):
        """
        Initialize the options analyzer

        Args:
            config: Configuration, the global instance when None
            smile: Volatility smile for strikes without a quoted IV,
                read from config when None
        """
        self.config = config or get_config()
        self.smile = smile or VolatilitySmile.from_config(self.config)

    def _max_pain_method(self, chain_size: int) -> str:
        chain_config = self.config.chain
        if chain_size > chain_config.prefix_sum_threshold:
            return 'prefix_sum'
        return chain_config.max_pain_method

    def analyze_chain(self,
                      snapshot: ChainSnapshot,
                      spot: float,
                      time_to_expiry_years: float,
                      risk_free_rate: Optional[float] = None,
                      dividend_yield: float = 0.0,
                      strike_interval: Optional[float] = None,
                      noise_source: Optional[NoiseSource] = None) -> ChainAnalysis:
        """
        Analyze every strike in a chain

        Strikes with quoted IVs are priced at those IVs; the rest use the
        synthetic smile, jittered only when a noise source is supplied.

        Args:
            snapshot: Chain snapshot (strikes ascending)
            spot: Current underlying price
            time_to_expiry_years: Time to expiry in years
            risk_free_rate: Annual rate, config default when None
            dividend_yield: Continuous dividend yield of the underlying
            strike_interval: Strike spacing for the ATM lookup, inferred when None
            noise_source: Optional jitter for synthetic IVs

        Returns:
            ChainAnalysis with the per-strike frame and ChainMetrics
        """
        if risk_free_rate is None:
            risk_free_rate = self.config.model.default_risk_free_rate
        days_per_year = self.config.model.days_per_year

        records = []
        rows_with_iv = []
        for row in snapshot:
            moneyness = row.strike / spot if spot > 0 else float('nan')
            call_iv = row.call_iv
            if call_iv is None:
                call_iv = estimate_iv(moneyness, time_to_expiry_years, draw_noise(noise_source), self.smile)
            put_iv = row.put_iv
            if put_iv is None:
                put_iv = estimate_iv(moneyness, time_to_expiry_years, draw_noise(noise_source), self.smile)

            call_quote = OptionQuoteInput(spot, row.strike, time_to_expiry_years,
                                          risk_free_rate, call_iv / 100.0, dividend_yield)
            put_quote = replace(call_quote, volatility=put_iv / 100.0)

            call_price = price_pair(call_quote).call_value
            put_price = price_pair(put_quote).put_value
            call_greeks = compute_greeks(call_quote, True, days_per_year)
            put_greeks = compute_greeks(put_quote, False, days_per_year)

            call_intrinsic = intrinsic_value(spot, row.strike, True)
            put_intrinsic = intrinsic_value(spot, row.strike, False)

            records.append({
                'Strike': row.strike,
                'Moneyness_Ratio': spot / row.strike,
                'Call_Bucket': classify_moneyness(spot, row.strike, 'CE'),
                'Put_Bucket': classify_moneyness(spot, row.strike, 'PE'),
                'Call_OI': row.call_oi,
                'Put_OI': row.put_oi,
                'Call_Volume': row.call_volume,
                'Put_Volume': row.put_volume,
                'Call_IV': call_iv,
                'Put_IV': put_iv,
                'Call_Price': call_price,
                'Put_Price': put_price,
                'Call_Delta': call_greeks.delta,
                'Put_Delta': put_greeks.delta,
                'Call_Gamma': call_greeks.gamma,
                'Put_Gamma': put_greeks.gamma,
                'Call_Theta': call_greeks.theta,
                'Put_Theta': put_greeks.theta,
                'Call_Vega': call_greeks.vega,
                'Put_Vega': put_greeks.vega,
                'Call_Intrinsic': call_intrinsic,
                'Put_Intrinsic': put_intrinsic,
                'Call_Time_Value': max(0.0, call_price - call_intrinsic),
                'Put_Time_Value': max(0.0, put_price - put_intrinsic),
            })
            rows_with_iv.append(replace(row, call_iv=call_iv, put_iv=put_iv))

        metrics = compute_chain_metrics(
            ChainSnapshot(tuple(rows_with_iv)),
            spot,
            strike_interval=strike_interval,
            max_pain_method=self._max_pain_method(len(snapshot)),
            atm_iv_fallback=self.config.chain.atm_iv_fallback,
        )

        logger.info("Analyzed %d strikes: max pain %.2f, PCR %.2f, ATM IV %.2f%%",
                    len(records), metrics.max_pain_strike, metrics.put_call_ratio, metrics.atm_implied_vol)

        return ChainAnalysis(
            frame=pd.DataFrame(records),
            metrics=metrics,
            spot=spot,
            time_to_expiry_years=time_to_expiry_years,
        )

    def analyze_risk_metrics(self, options_df: pd.DataFrame) -> Dict[str, float]:
        """
        Summarise the per-strike table of an analysis

        Args:
            options_df: ChainAnalysis.frame

        Returns:
            Dictionary with averages, extremes and bucket counts
        """
        if options_df.empty:
            return {}

        return {
            'total_strikes': len(options_df),
            'avg_call_delta': options_df['Call_Delta'].mean(),
            'avg_put_delta': options_df['Put_Delta'].mean(),
            'max_gamma': max(options_df['Call_Gamma'].max(), options_df['Put_Gamma'].max()),
            'avg_call_vega': options_df['Call_Vega'].mean(),
            'avg_put_vega': options_df['Put_Vega'].mean(),
            'avg_call_theta': options_df['Call_Theta'].mean(),
            'avg_put_theta': options_df['Put_Theta'].mean(),
            'itm_calls': int(options_df['Call_Bucket'].isin(['ITM', 'Deep_ITM']).sum()),
            'atm_strikes': int((options_df['Call_Bucket'] == 'ATM').sum()),
            'otm_calls': int(options_df['Call_Bucket'].isin(['OTM', 'Deep_OTM']).sum()),
        }
