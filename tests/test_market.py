"""
Market helper tests: instruments, strike ladders, moneyness, timing, repo rate
"""

from datetime import date, datetime

import pandas as pd
import pytest

from models.black_scholes import InvalidInputError
from data.market import (
    classify_moneyness,
    generate_strike_ladder,
    get_instrument,
    get_risk_free_rate,
    market_status,
    round_to_tick,
    strike_interval_for_spot,
    time_to_expiry_years,
)

HOURS_PER_YEAR = 365 * 24


class TestInstruments:

    def test_known_instrument(self, config):
        nifty = get_instrument('nifty', config)

        assert nifty.symbol == 'NIFTY'
        assert nifty.lot_size == 25
        assert nifty.strike_interval == 50.0
        assert get_instrument('BANKNIFTY', config).strike_interval == 100.0

    def test_unknown_instrument(self, config):
        with pytest.raises(InvalidInputError):
            get_instrument('SENSEX', config)

    @pytest.mark.parametrize("spot,interval", [
        (250.0, 5.0), (750.0, 10.0), (2900.0, 25.0), (7500.0, 50.0), (25000.0, 100.0),
    ])
    def test_interval_bands(self, spot, interval):
        assert strike_interval_for_spot(spot) == interval


class TestStrikeLadder:

    def test_centred_on_atm(self):
        ladder = generate_strike_ladder(25030.0, 50.0, strikes_each_side=2)
        assert ladder == [24950.0, 25000.0, 25050.0, 25100.0, 25150.0]

    def test_default_interval_from_spot(self):
        ladder = generate_strike_ladder(2900.0, strikes_each_side=1)
        assert ladder == [2875.0, 2900.0, 2925.0]

    def test_drops_non_positive_strikes(self):
        ladder = generate_strike_ladder(12.0, 5.0, strikes_each_side=4)

        assert min(ladder) > 0
        assert ladder == sorted(ladder)
        assert 10.0 in ladder

    def test_rejects_bad_arguments(self):
        with pytest.raises(InvalidInputError):
            generate_strike_ladder(0.0, 50.0)
        with pytest.raises(InvalidInputError):
            generate_strike_ladder(100.0, 5.0, strikes_each_side=-1)

    @pytest.mark.parametrize("interval", [0.0, -50.0])
    def test_rejects_non_positive_interval(self, interval):
        with pytest.raises(InvalidInputError):
            generate_strike_ladder(25000.0, interval, strikes_each_side=2)

    def test_width_from_config(self, config):
        ladder = generate_strike_ladder(25000.0, 50.0, config=config)

        assert len(ladder) == 2 * config.feed.strikes_each_side + 1
        assert ladder[config.feed.strikes_each_side] == 25000.0

    def test_width_override_in_config(self, tmp_path):
        from config.settings import Config

        config_file = tmp_path / "config.yaml"
        config_file.write_text("feed:\n  strikes_each_side: 3\n")
        config = Config(config_file, setup_logging=False)

        assert generate_strike_ladder(25000.0, 100.0, config=config) == [
            24700.0, 24800.0, 24900.0, 25000.0, 25100.0, 25200.0, 25300.0]

    def test_half_interval_spot_rounds_up(self):
        assert generate_strike_ladder(25025.0, 50.0, strikes_each_side=0) == [25050.0]

    def test_round_to_tick(self):
        assert round_to_tick(101.23) == 101.25
        assert round_to_tick(101.22) == 101.2
        with pytest.raises(InvalidInputError):
            round_to_tick(101.0, 0.0)


class TestMoneyness:

    @pytest.mark.parametrize("spot,strike,option_type,bucket", [
        (25000.0, 23000.0, 'CE', 'Deep_ITM'),
        (25000.0, 24500.0, 'CE', 'ITM'),
        (25000.0, 25000.0, 'CE', 'ATM'),
        (25000.0, 25800.0, 'CE', 'OTM'),
        (25000.0, 27000.0, 'CE', 'Deep_OTM'),
        (25000.0, 27000.0, 'PE', 'Deep_ITM'),
        (25000.0, 25800.0, 'PE', 'ITM'),
        (25000.0, 25000.0, 'PE', 'ATM'),
        (25000.0, 24500.0, 'PE', 'OTM'),
        (25000.0, 23000.0, 'PE', 'Deep_OTM'),
    ])
    def test_buckets(self, spot, strike, option_type, bucket):
        assert classify_moneyness(spot, strike, option_type) == bucket

    def test_rejects_non_positive(self):
        with pytest.raises(InvalidInputError):
            classify_moneyness(0.0, 100.0, 'CE')


class TestExpiryTiming:

    def test_bare_date_settles_at_close(self):
        years = time_to_expiry_years('2025-01-30', '2025-01-30 09:30')
        assert years == pytest.approx(6 / HOURS_PER_YEAR)

    def test_date_object(self):
        years = time_to_expiry_years(date(2025, 1, 31), datetime(2025, 1, 30, 15, 30))
        assert years == pytest.approx(24 / HOURS_PER_YEAR)

    def test_aware_timestamp_converted(self):
        now = pd.Timestamp('2025-01-30 04:00', tz='UTC')  # 09:30 IST
        assert time_to_expiry_years('2025-01-30', now) == pytest.approx(6 / HOURS_PER_YEAR)

    def test_past_expiry_is_zero(self):
        assert time_to_expiry_years('2025-01-23', '2025-01-30 10:00') == 0.0

    @pytest.mark.parametrize("now,status", [
        ('2025-01-27 10:00', 'OPEN'),
        ('2025-01-27 09:15', 'OPEN'),
        ('2025-01-27 08:00', 'PRE_OPEN'),
        ('2025-01-27 16:00', 'CLOSED'),
        ('2025-01-25 11:00', 'CLOSED'),
    ])
    def test_market_status(self, now, status):
        assert market_status(now) == status


class TestRiskFreeRate:

    @pytest.mark.parametrize("valuation_date,rate", [
        ('2021-06-01', 0.065),
        ('2022-01-01', 0.040),
        ('2022-06-15', 0.050),
        ('2024-03-01', 0.065),
        ('2025-07-01', 0.055),
    ])
    def test_history_lookup(self, config, valuation_date, rate):
        assert get_risk_free_rate(valuation_date, config) == pytest.approx(rate)

    def test_empty_history_uses_default(self, tmp_path):
        from config.settings import Config

        config_file = tmp_path / "config.yaml"
        config_file.write_text("model:\n  risk_free_rate:\n    default: 0.07\n    history: null\n")
        config = Config(config_file, setup_logging=False)

        assert get_risk_free_rate('2025-01-01', config) == 0.07
