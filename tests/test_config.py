"""
Configuration loading tests
"""

import logging

import pytest

from config.settings import DEFAULT_CONFIG, Config, ConfigurationError


class TestConfigLoading:

    def test_project_file(self, config):
        assert config.model.default_risk_free_rate == pytest.approx(0.065)
        assert config.model.days_per_year == 365
        assert config.chain.atm_iv_fallback == 12.0
        assert config.chain.max_pain_method == 'brute_force'
        assert config.instruments['NIFTY']['lot_size'] == 25
        assert config.feed.refresh_interval == pytest.approx(15.0)

    def test_missing_file_uses_defaults(self, tmp_path):
        with pytest.warns(UserWarning):
            config = Config(tmp_path / "absent.yaml", setup_logging=False)

        assert config.margin.span_rate == DEFAULT_CONFIG['margin']['span_rate']
        assert config.volatility_smile.as_dict()['base_vol'] == pytest.approx(0.20)

    def test_partial_file_merges_over_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "model:\n"
            "  dividend_yield:\n"
            "    INFY: 0.02\n"
            "chain:\n"
            "  atm_iv_fallback: 15.0\n"
        )
        config = Config(config_file, setup_logging=False)

        assert config.chain.atm_iv_fallback == 15.0
        assert config.chain.prefix_sum_threshold == 200
        assert config.model.dividend_yield_for('infy') == pytest.approx(0.02)
        assert config.model.dividend_yield_for('TCS') == pytest.approx(0.015)
        assert config.model.default_risk_free_rate == pytest.approx(0.065)

    def test_defaults_not_mutated(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("margin:\n  span_rate: 0.5\n")
        Config(config_file, setup_logging=False)

        assert DEFAULT_CONFIG['margin']['span_rate'] == 0.15

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("chain: [unclosed\n")

        with pytest.raises(ConfigurationError):
            Config(config_file, setup_logging=False)

    def test_non_mapping_root(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            Config(config_file, setup_logging=False)

    def test_empty_file_is_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        assert Config(config_file, setup_logging=False).margin.minimum_rate == 0.05


class TestConfigValues:

    def test_nested_lookup(self, config):
        assert config._get_config_value('chain.atm_iv_fallback') == 12.0
        assert config._get_config_value('chain.unknown', default='x') == 'x'

    def test_required_value_missing(self, config):
        with pytest.raises(ConfigurationError):
            config._get_config_value('chain.unknown', required=True)

    def test_reload_picks_up_changes(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("feed:\n  refresh_interval: 5\n")
        config = Config(config_file, setup_logging=False)
        config_file.write_text("feed:\n  refresh_interval: 30\n")

        config.reload_configuration()

        assert config.feed.refresh_interval == 30.0


class TestLoggingSetup:

    def test_invalid_level(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("logging:\n  level: LOUD\n")

        with pytest.raises(ConfigurationError):
            Config(config_file)

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "analytics.log"
        config_file = tmp_path / "config.yaml"
        config_file.write_text(f"logging:\n  level: DEBUG\n  file: '{log_file.as_posix()}'\n")

        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        root.handlers = []
        try:
            Config(config_file)
            assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
            assert log_file.parent.exists()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)
