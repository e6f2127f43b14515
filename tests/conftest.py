"""
Shared fixtures for the options analytics test suite
"""

from pathlib import Path

import pytest

from config.settings import Config
from data.chain import ChainRow, ChainSnapshot

PROJECT_CONFIG = Path(__file__).parent.parent / "config.yaml"


@pytest.fixture
def config() -> Config:
    """Project configuration without touching the root logger"""
    return Config(PROJECT_CONFIG, setup_logging=False)


@pytest.fixture
def nifty_chain() -> ChainSnapshot:
    """NIFTY strikes 24000-26000 every 250, open interest only"""
    strikes = [24000.0, 24250.0, 24500.0, 24750.0, 25000.0, 25250.0, 25500.0, 25750.0, 26000.0]
    call_oi = [20000, 35000, 60000, 110000, 150000, 180000, 140000, 90000, 50000]
    put_oi = [80000, 120000, 160000, 170000, 140000, 90000, 50000, 30000, 15000]
    return ChainSnapshot.from_rows(
        ChainRow(strike=k, call_oi=c, put_oi=p, call_volume=c / 10, put_volume=p / 10)
        for k, c, p in zip(strikes, call_oi, put_oi)
    )
