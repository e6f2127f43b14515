"""
Chain data and analysis package for Indian Options Analytics
"""

from .chain import (
    DEFAULT_ATM_IV,
    PCR_UNDEFINED,
    ChainMetrics,
    ChainRow,
    ChainSnapshot,
    ChainValidationError,
    compute_atm_iv,
    compute_chain_metrics,
    compute_max_pain,
    compute_pcr,
)
from .options_analyzer import ChainAnalysis, IndianOptionsAnalyzer
from .feed import ChainPublisher, MarketSnapshot

__all__ = [
    'DEFAULT_ATM_IV',
    'PCR_UNDEFINED',
    'ChainMetrics',
    'ChainRow',
    'ChainSnapshot',
    'ChainValidationError',
    'compute_atm_iv',
    'compute_chain_metrics',
    'compute_max_pain',
    'compute_pcr',
    'ChainAnalysis',
    'IndianOptionsAnalyzer',
    'ChainPublisher',
    'MarketSnapshot',
]
