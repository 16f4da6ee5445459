"""Request signing for private OKX endpoints"""

import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Union

from portfolio_monitor.config import Credentials


def _okx_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class OkxRequestSigner:
    """Builds the OK-ACCESS-* headers for a request"""

    def __init__(self, credentials: Credentials, clock: Optional[Callable[[], str]] = None):
        self.api_key = credentials.okx_api_key
        self.secret_key = credentials.okx_api_secret_key
        self.passphrase = credentials.okx_api_passphrase
        self.clock = clock or _okx_timestamp

    def sign(self, timestamp: str, method: str, request_path: str, body: Union[str, dict] = "") -> str:
        if isinstance(body, dict):
            body = json.dumps(body)
        prehash = f"{timestamp}{method.upper()}{request_path}{body}"
        digest = hmac.new(self.secret_key.encode('utf-8'), prehash.encode('utf-8'), hashlib.sha256).digest()
        return base64.b64encode(digest).decode('utf-8')

    def headers(self, method: str, request_path: str, body: Union[str, dict] = "") -> Dict[str, str]:
        """Headers for one request; request_path includes the query string"""
        timestamp = self.clock()
        return {
            "OK-ACCESS-KEY": self.api_key,
            "OK-ACCESS-SIGN": self.sign(timestamp, method, request_path, body),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self.passphrase,
            "Content-Type": "application/json",
        }
