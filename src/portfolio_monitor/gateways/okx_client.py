"""OKX REST clients for market data and account balances"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from portfolio_monitor.config import ExchangeConfig
from portfolio_monitor.exceptions import UpstreamError
from portfolio_monitor.gateways.base import AccountGateway, MarketDataGateway
from portfolio_monitor.gateways.signing import OkxRequestSigner
from portfolio_monitor.models import PortfolioAsset, PortfolioSummary, TickerPrice

# Balances slightly below zero are rounding noise from the exchange
BALANCE_NOISE_FLOOR = -1e-9

# history-candles rows: [ts, open, high, low, close, vol, ...]
CANDLE_CLOSE_INDEX = 4


class OkxHttpClient:
    """Thin aiohttp wrapper that turns every failure into UpstreamError"""

    def __init__(self, config: ExchangeConfig, signer: Optional[OkxRequestSigner] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config
        self.signer = signer
        self.logger = logger or logging.getLogger(__name__)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, signed: bool = False) -> List[Any]:
        """
        GET an OKX endpoint and return its 'data' list.

        Raises:
            UpstreamError: On transport errors, timeouts, HTTP errors, non-JSON bodies or a non-zero OKX code
        """
        request_path = f"{path}?{urlencode(params)}" if params else path
        url = f"{self.config.base_url}{request_path}"

        headers = {}
        if signed:
            if self.signer is None:
                raise UpstreamError(f"Signed request to {path} without a signer")
            headers = self.signer.headers("GET", request_path)

        self.logger.debug(f"GET {request_path}")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
                ) as response:
                    if response.status != 200:
                        response_text = await response.text()
                        raise UpstreamError(f"OKX returned HTTP {response.status} for {path}: {response_text[:200]}")
                    payload = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise UpstreamError(f"OKX request to {path} timed out after {self.config.request_timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise UpstreamError(f"OKX request to {path} failed: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"OKX response for {path} is not valid JSON: {e}") from e

        return self.unwrap(payload, path)

    @staticmethod
    def unwrap(payload: Any, path: str) -> List[Any]:
        if not isinstance(payload, dict):
            raise UpstreamError(f"OKX response for {path} is not a JSON object")

        code = str(payload.get('code', ''))
        if code != '0':
            raise UpstreamError(f"OKX error {code} for {path}: {payload.get('msg', '')}", code=code)

        data = payload.get('data') or []
        if not isinstance(data, list):
            raise UpstreamError(f"OKX response for {path} has no data list")
        return data


class OkxMarketDataClient(MarketDataGateway):
    """Public market data endpoints"""

    def __init__(self, http: OkxHttpClient, logger: Optional[logging.Logger] = None):
        self.http = http
        self.logger = logger or logging.getLogger(__name__)

    async def get_prices(self) -> Dict[str, TickerPrice]:
        data = await self.http.get(
            "/api/v5/market/tickers",
            {"instType": self.http.config.instrument_type}
        )
        prices = self.parse_tickers(data)
        self.logger.debug(f"Fetched {len(prices)} tickers")
        return prices

    async def get_candles(self, inst_id: str, interval: str = "1D", limit: int = 100) -> List[float]:
        data = await self.http.get(
            "/api/v5/market/history-candles",
            {"instId": inst_id.upper(), "bar": interval, "limit": limit}
        )
        return self.parse_candle_closes(data)

    @staticmethod
    def parse_tickers(data: List[Dict[str, Any]]) -> Dict[str, TickerPrice]:
        prices = {}
        for ticker in data:
            try:
                last = float(ticker['last'])
                open_24h = float(ticker.get('open24h') or 0)
            except (KeyError, TypeError, ValueError):
                continue
            change_24h = (last - open_24h) / open_24h if open_24h > 0 else 0.0
            prices[ticker['instId']] = TickerPrice(price=last, open_24h=open_24h, change_24h=change_24h)
        return prices

    @staticmethod
    def parse_candle_closes(data: List[List[str]]) -> List[float]:
        # OKX returns newest first
        return [float(candle[CANDLE_CLOSE_INDEX]) for candle in reversed(data)]


class OkxAccountClient(AccountGateway):
    """Private account endpoints"""

    def __init__(self, http: OkxHttpClient, minimum_asset_value: float = 1.0,
                 logger: Optional[logging.Logger] = None):
        self.http = http
        self.minimum_asset_value = minimum_asset_value
        self.logger = logger or logging.getLogger(__name__)

    async def get_balances(self) -> Dict[str, float]:
        data = await self.http.get("/api/v5/account/balance", signed=True)
        balances = self.parse_balances(data)
        self.logger.debug(f"Fetched balances for {len(balances)} assets")
        return balances

    async def get_portfolio(self, prices: Dict[str, TickerPrice]) -> PortfolioSummary:
        balances = await self.get_balances()
        return self.value_portfolio(balances, prices)

    @staticmethod
    def parse_balances(data: List[Dict[str, Any]]) -> Dict[str, float]:
        """
        Map each currency to its equity.

        Raises:
            UpstreamError: When the payload carries no account entry or no details list;
                only an empty details list means the account holds nothing
        """
        if not data or not isinstance(data[0], dict):
            raise UpstreamError("OKX balance response has no account entry")
        details = data[0].get('details')
        if not isinstance(details, list):
            raise UpstreamError("OKX balance response has no details list")

        balances = {}
        for detail in details:
            try:
                amount = float(detail['eq'])
            except (KeyError, TypeError, ValueError):
                continue
            if amount > BALANCE_NOISE_FLOOR:
                balances[detail['ccy'].upper()] = max(amount, 0.0)
        return balances

    def value_portfolio(self, balances: Dict[str, float], prices: Dict[str, TickerPrice]) -> PortfolioSummary:
        quote = self.http.config.quote_currency
        assets = []
        total = 0.0
        for asset, amount in balances.items():
            if amount <= 0:
                continue
            ticker = prices.get(f"{asset}-{quote}")
            if ticker is None:
                price, change_24h = (1.0, 0.0) if asset == quote else (0.0, 0.0)
            else:
                price, change_24h = ticker.price, ticker.change_24h
            value = amount * price
            if value >= self.minimum_asset_value:
                total += value
                assets.append(PortfolioAsset(
                    asset=asset, price=price, value=value, amount=amount, change_24h=change_24h
                ))

        assets.sort(key=lambda a: a.value, reverse=True)
        return PortfolioSummary(assets=assets, total=total)
