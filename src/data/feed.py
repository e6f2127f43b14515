"""
Periodic chain publisher
Pulls market snapshots from a provider, runs the chain analysis and pushes
the result to subscribers. Fetching from NSE is the provider's business.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from data.chain import ChainSnapshot
from data.options_analyzer import ChainAnalysis, IndianOptionsAnalyzer
from models.volatility import NoiseSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketSnapshot:
    """What a provider returns for one symbol"""
    symbol: str
    spot: float
    chain: ChainSnapshot
    time_to_expiry_years: float
    risk_free_rate: Optional[float] = None
    dividend_yield: float = 0.0


class SnapshotProvider(Protocol):
    def __call__(self, symbol: str) -> MarketSnapshot:
        ...


Subscriber = Callable[[str, ChainAnalysis], None]


class ChainPublisher:
    """
    Fan-out of chain analyses to subscribers

    publish() can be driven by the caller, or start() runs it on a daemon
    thread every interval_seconds for each watched symbol.
    """

    def __init__(self,
                 provider: SnapshotProvider,
                 analyzer: Optional[IndianOptionsAnalyzer] = None,
                 interval_seconds: Optional[float] = None,
                 noise_source: Optional[NoiseSource] = None):
        self.provider = provider
        self.analyzer = analyzer or IndianOptionsAnalyzer()
        if interval_seconds is None:
            interval_seconds = self.analyzer.config.feed.refresh_interval
        if interval_seconds <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval_seconds}")
        self.interval_seconds = interval_seconds
        self.noise_source = noise_source

        self._subscribers: List[Subscriber] = []
        self._symbols: List[str] = []
        self._latest: Dict[str, ChainAnalysis] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that removes it"""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def watch(self, symbol: str) -> None:
        """Add a symbol to the background refresh loop"""
        key = symbol.upper()
        with self._lock:
            if key not in self._symbols:
                self._symbols.append(key)

    def unwatch(self, symbol: str) -> None:
        key = symbol.upper()
        with self._lock:
            if key in self._symbols:
                self._symbols.remove(key)

    def latest(self, symbol: str) -> Optional[ChainAnalysis]:
        """Most recent analysis published for a symbol"""
        with self._lock:
            return self._latest.get(symbol.upper())

    def publish(self, symbol: str) -> ChainAnalysis:
        """
        Fetch, analyze and deliver one snapshot

        Provider and analysis errors propagate to the caller. A failing
        subscriber is logged and does not stop delivery to the others.
        """
        key = symbol.upper()
        snapshot = self.provider(key)
        analysis = self.analyzer.analyze_chain(
            snapshot.chain,
            snapshot.spot,
            snapshot.time_to_expiry_years,
            risk_free_rate=snapshot.risk_free_rate,
            dividend_yield=snapshot.dividend_yield,
            noise_source=self.noise_source,
        )

        with self._lock:
            self._latest[key] = analysis
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(key, analysis)
            except Exception as e:
                logger.error(f"Subscriber failed for {key}: {e}")

        return analysis

    def refresh_all(self) -> None:
        """Publish every watched symbol once"""
        with self._lock:
            symbols = list(self._symbols)

        for symbol in symbols:
            try:
                self.publish(symbol)
            except Exception as e:
                logger.error(f"Refresh failed for {symbol}: {e}")

    def _run(self, stop_event: threading.Event) -> None:
        logger.info("Chain publisher started, refreshing every %.1fs", self.interval_seconds)
        while not stop_event.is_set():
            self.refresh_all()
            stop_event.wait(self.interval_seconds)
        logger.info("Chain publisher stopped")

    @property
    def running(self) -> bool:
        """True while a refresh loop is alive and has not been asked to stop"""
        return (self._thread is not None and self._thread.is_alive()
                and not self._stop_event.is_set())

    def start(self) -> None:
        """
        Start the refresh loop on a daemon thread

        A loop left running by a timed-out stop() is joined first, so at most
        one loop is ever alive.
        """
        if self.running:
            return
        if self._thread is not None and self._thread.is_alive():
            logger.info("Waiting for the previous refresh loop to finish")
            self._thread.join()

        # each run owns its event so an old loop never sees a cleared flag
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                        name='chain-publisher', daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the loop to stop and wait up to timeout seconds for it"""
        self._stop_event.set()
        if self._thread is None:
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Chain publisher still finishing a refresh after %.2fs", timeout or 0.0)
        else:
            self._thread = None
