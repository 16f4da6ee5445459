from .base import MarketDataGateway, AccountGateway
from .okx_client import OkxHttpClient, OkxMarketDataClient, OkxAccountClient
from .signing import OkxRequestSigner

__all__ = [
    "MarketDataGateway",
    "AccountGateway",
    "OkxHttpClient",
    "OkxMarketDataClient",
    "OkxAccountClient",
    "OkxRequestSigner",
]
