"""
BTC/USD price sources for the fee KPI card.

The metrics aggregator takes the BTC price as a plain number; this module
decides where that number comes from. The default is a fixed rate, the
CoinGecko source fetches the spot price with retry logic for rate limits
and falls back to the fixed rate when the API is unavailable.
"""
import logging
import threading
import time
from typing import Optional

import requests

from config import config

logger = logging.getLogger(__name__)

class RateLimitError(Exception):
    """Raised when CoinGecko rate limit is hit"""
    pass

class FixedPriceSource:
    def __init__(self, price_usd: float = None):
        self.price_usd = config.BTC_PRICE_USD if price_usd is None else price_usd

    def get_btc_price(self) -> float:
        return self.price_usd

class CoinGeckoPriceSource:
    def __init__(self, fallback_price: float = None, cache_seconds: int = 60,
                 session=None, sleep=time.sleep):
        self.base_url = config.COINGECKO_API_URL
        self.max_retries = config.MAX_RETRIES
        self.fallback_price = config.BTC_PRICE_USD if fallback_price is None else fallback_price
        self.cache_seconds = cache_seconds
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': 'PartnersAnalytics/1.0'
        })
        self._sleep = sleep
        self._lock = threading.Lock()
        self._cached_price = None
        self._cached_at = 0.0

    def _fetch_from_coingecko(self) -> Optional[float]:
        """Fetch spot BTC/USD with exponential backoff on 429"""
        params = {'ids': 'bitcoin', 'vs_currencies': 'usd'}

        for attempt in range(self.max_retries):
            try:
                response = self.session.get(self.base_url, params=params, timeout=config.REQUEST_TIMEOUT)
            except requests.exceptions.Timeout:
                logger.warning(f"Timeout fetching BTC price (attempt {attempt + 1}/{self.max_retries})")
                self._sleep(2 ** attempt)
                continue

            if response.status_code == 200:
                price = response.json().get('bitcoin', {}).get('usd')
                if price:
                    return float(price)
                logger.warning("No USD price in CoinGecko response for bitcoin")
                return None

            if response.status_code == 429:
                wait_time = 2 ** attempt  # 1s, 2s, 4s, 8s, 16s
                logger.warning(f"Rate limit hit (attempt {attempt + 1}/{self.max_retries}), waiting {wait_time}s...")
                self._sleep(wait_time)
                continue

            logger.error(f"CoinGecko API error: {response.status_code} - {response.text}")
            return None

        raise RateLimitError(f"Failed to fetch BTC price after {self.max_retries} retries")

    def get_btc_price(self) -> float:
        with self._lock:
            if self._cached_price is not None and time.time() - self._cached_at < self.cache_seconds:
                return self._cached_price

        try:
            price = self._fetch_from_coingecko()
        except (requests.exceptions.RequestException, RateLimitError, ValueError) as e:
            logger.error(f"Error fetching BTC price from CoinGecko: {e}")
            price = None

        if not price:
            logger.warning(f"Using fallback BTC price ${self.fallback_price}")
            return self.fallback_price

        with self._lock:
            self._cached_price = price
            self._cached_at = time.time()
        return price

def create_price_source(source: str = None):
    source = (source or config.BTC_PRICE_SOURCE).lower()
    if source == 'coingecko':
        return CoinGeckoPriceSource()
    if source != 'fixed':
        logger.warning(f"Unknown BTC_PRICE_SOURCE '{source}', using fixed price")
    return FixedPriceSource()
