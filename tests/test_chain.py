"""
Chain aggregate tests: max pain, put-call ratio, ATM implied volatility
"""

import math

import pandas as pd
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from models.black_scholes import InvalidInputError
from data.chain import (
    DEFAULT_ATM_IV,
    PCR_UNDEFINED,
    ChainRow,
    ChainSnapshot,
    ChainValidationError,
    atm_strike,
    compute_atm_iv,
    compute_chain_metrics,
    compute_max_pain,
    compute_pcr,
    infer_strike_interval,
    writer_payout,
)


def chain_from(strikes, call_oi, put_oi, call_iv=None, put_iv=None):
    call_iv = call_iv or [None] * len(strikes)
    put_iv = put_iv or [None] * len(strikes)
    return ChainSnapshot.from_rows(
        ChainRow(strike=k, call_oi=c, put_oi=p, call_iv=ci, put_iv=pi)
        for k, c, p, ci, pi in zip(strikes, call_oi, put_oi, call_iv, put_iv)
    )


@st.composite
def oi_chains(draw):
    size = draw(st.integers(min_value=1, max_value=25))
    base = draw(st.integers(min_value=100, max_value=500)) * 50
    oi = st.integers(min_value=0, max_value=500000)
    return chain_from(
        [float(base + 50 * i) for i in range(size)],
        [draw(oi) for _ in range(size)],
        [draw(oi) for _ in range(size)],
    )


class TestChainSnapshot:

    def test_rejects_unsorted_strikes(self):
        with pytest.raises(ChainValidationError):
            chain_from([100.0, 90.0], [1, 1], [1, 1])

    def test_rejects_duplicate_strikes(self):
        with pytest.raises(ChainValidationError):
            chain_from([100.0, 100.0], [1, 1], [1, 1])

    @pytest.mark.parametrize("row", [
        ChainRow(strike=0.0, call_oi=1, put_oi=1),
        ChainRow(strike=100.0, call_oi=-1, put_oi=1),
        ChainRow(strike=100.0, call_oi=1, put_oi=float('nan')),
    ])
    def test_rejects_bad_rows(self, row):
        with pytest.raises(ChainValidationError):
            ChainSnapshot.from_rows([row])

    @pytest.mark.parametrize("call_iv,put_iv", [
        (float('nan'), 14.0),
        (14.0, float('inf')),
        (-30.0, 10.0),
        (12.0, -0.5),
    ])
    def test_rejects_bad_iv(self, call_iv, put_iv):
        with pytest.raises(ChainValidationError):
            ChainSnapshot.from_rows([
                ChainRow(strike=25000.0, call_oi=1, put_oi=1, call_iv=call_iv, put_iv=put_iv)
            ])

    def test_accepts_zero_and_missing_iv(self):
        chain = ChainSnapshot.from_rows([
            ChainRow(strike=25000.0, call_oi=1, put_oi=1, call_iv=0.0, put_iv=None)
        ])
        assert chain.rows[0].call_iv == 0.0

    def test_validation_error_is_invalid_input(self):
        assert issubclass(ChainValidationError, InvalidInputError)

    def test_frame_round_trip_sorts_strikes(self):
        frame = pd.DataFrame({
            'Strike': [25100.0, 25000.0],
            'Call_OI': [10.0, 20.0],
            'Put_OI': [30.0, 40.0],
            'Call_IV': [14.0, None],
        })
        chain = ChainSnapshot.from_frame(frame)

        assert list(chain.strikes) == [25000.0, 25100.0]
        assert chain.rows[0].call_iv is None
        assert chain.rows[1].call_iv == 14.0
        assert chain.rows[1].put_iv is None
        assert list(chain.to_frame()['Put_OI']) == [40.0, 30.0]

    def test_from_frame_requires_columns(self):
        with pytest.raises(ChainValidationError):
            ChainSnapshot.from_frame(pd.DataFrame({'Strike': [100.0]}))


class TestMaxPain:

    def test_three_strike_scenario(self):
        chain = chain_from([100.0, 110.0, 120.0], [50, 100, 200], [200, 100, 50])
        assert compute_max_pain(chain) == 110.0

    def test_ties_go_to_smallest_strike(self):
        chain = chain_from([100.0, 110.0, 120.0], [0, 0, 100], [100, 0, 0])

        assert [writer_payout(chain, k) for k in (100.0, 110.0, 120.0)] == [2000.0, 2000.0, 2000.0]
        assert compute_max_pain(chain) == 100.0
        assert compute_max_pain(chain, 'prefix_sum') == 100.0

    def test_single_strike(self):
        assert compute_max_pain(chain_from([25000.0], [10], [20])) == 25000.0

    def test_empty_chain(self):
        with pytest.raises(ChainValidationError):
            compute_max_pain(ChainSnapshot(()))

    def test_unknown_method(self):
        with pytest.raises(ChainValidationError):
            compute_max_pain(chain_from([100.0], [1], [1]), 'monte_carlo')

    def test_nifty_chain(self, nifty_chain):
        strikes = list(nifty_chain.strikes)
        payouts = [writer_payout(nifty_chain, k) for k in strikes]

        assert compute_max_pain(nifty_chain) == strikes[payouts.index(min(payouts))]

    @given(chain=oi_chains())
    @settings(max_examples=200)
    def test_prefix_sum_matches_brute_force(self, chain):
        assert compute_max_pain(chain, 'prefix_sum') == compute_max_pain(chain, 'brute_force')

    @given(chain=oi_chains())
    @settings(max_examples=100)
    def test_result_is_a_minimising_strike(self, chain):
        result = compute_max_pain(chain)
        best = min(writer_payout(chain, k) for k in chain.strikes)

        assert result in list(chain.strikes)
        assert writer_payout(chain, result) == best


class TestPutCallRatio:

    def test_ratio(self):
        chain = chain_from([100.0, 110.0], [600000, 400000], [500000, 750000])
        assert compute_pcr(chain) == 1.25

    def test_zero_call_oi_is_undefined(self):
        assert compute_pcr(chain_from([100.0], [0], [500])) == PCR_UNDEFINED
        assert math.isinf(compute_pcr(chain_from([100.0, 110.0], [0, 0], [0, 0])))

    def test_zero_put_oi(self):
        assert compute_pcr(chain_from([100.0], [500], [0])) == 0.0


class TestAtmIv:

    strikes = [24900.0, 24950.0, 25000.0, 25050.0]

    def chain(self):
        return chain_from(self.strikes, [1] * 4, [1] * 4,
                          call_iv=[15.0, 14.0, 13.0, 12.5],
                          put_iv=[16.0, 15.0, 14.0, 13.5])

    def test_average_at_rounded_strike(self):
        assert compute_atm_iv(self.chain(), 24960.0) == pytest.approx(14.5)
        assert compute_atm_iv(self.chain(), 24990.0) == pytest.approx(13.5)

    def test_explicit_interval(self):
        assert compute_atm_iv(self.chain(), 25010.0, strike_interval=50.0) == pytest.approx(13.5)

    def test_missing_atm_strike_falls_back(self):
        assert compute_atm_iv(self.chain(), 25400.0) == DEFAULT_ATM_IV

    def test_missing_iv_falls_back(self):
        chain = chain_from(self.strikes, [1] * 4, [1] * 4)
        assert compute_atm_iv(chain, 25000.0) == DEFAULT_ATM_IV

    def test_custom_fallback(self):
        assert compute_atm_iv(self.chain(), 30000.0, fallback=18.0) == 18.0

    def test_single_strike_chain(self):
        chain = chain_from([25000.0], [1], [1], call_iv=[13.0], put_iv=[15.0])

        assert compute_atm_iv(chain, 25000.0) == pytest.approx(14.0)
        assert compute_atm_iv(chain, 25030.0) == DEFAULT_ATM_IV

    def test_empty_chain_falls_back(self):
        assert compute_atm_iv(ChainSnapshot(()), 25000.0) == DEFAULT_ATM_IV

    def test_invalid_spot(self):
        with pytest.raises(InvalidInputError):
            compute_atm_iv(self.chain(), 0.0)

    def test_helpers(self):
        assert infer_strike_interval(self.chain()) == 50.0
        assert infer_strike_interval(chain_from([100.0], [1], [1])) is None
        assert atm_strike(24974.0, 50.0) == 24950.0

    @pytest.mark.parametrize("spot,expected", [
        (25025.0, 25050.0),
        (24975.0, 25000.0),
        (25075.0, 25100.0),
        (25024.99, 25000.0),
    ])
    def test_half_interval_rounds_up(self, spot, expected):
        assert atm_strike(spot, 50.0) == expected

    def test_atm_iv_at_half_interval(self):
        assert compute_atm_iv(self.chain(), 24925.0) == pytest.approx(14.5)

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ChainValidationError):
            atm_strike(24974.0, 0.0)


class TestChainMetrics:

    def test_bundle(self, nifty_chain):
        metrics = compute_chain_metrics(nifty_chain, 25010.0)

        assert metrics.max_pain_strike == compute_max_pain(nifty_chain)
        assert metrics.put_call_ratio == pytest.approx(compute_pcr(nifty_chain))
        assert metrics.pcr_defined
        assert metrics.atm_iv_is_fallback
        assert metrics.atm_implied_vol == DEFAULT_ATM_IV
        assert metrics.total_call_oi == 835000.0
        assert metrics.total_put_oi == 855000.0
        assert metrics.total_volume == pytest.approx(169000.0)

    def test_undefined_pcr_flag(self):
        metrics = compute_chain_metrics(chain_from([100.0, 110.0], [0, 0], [5, 5]), 105.0)

        assert not metrics.pcr_defined
        assert metrics.put_call_ratio == PCR_UNDEFINED
