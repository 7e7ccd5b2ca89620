"""
csob_gateway/transport.py

ゲートウェイへのHTTP送信（httpx）

コアからは send(method, url, body) -> 生のレスポンスボディ として見える。
ネットワーク/タイムアウト/HTTPステータスの失敗は全て TransportFailure。
"""

from typing import Any, Dict, Optional, Protocol

import httpx

from csob_gateway.exceptions import TransportFailure
from csob_gateway.logger import LoggingClient, get_logger

logger = get_logger(__name__, service_name='csob_gateway')

DEFAULT_TIMEOUT = 30.0

JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class Transport(Protocol):
    def send(self, method: str, url: str, body: Optional[Dict[str, Any]] = None) -> str:
        ...


class HttpxTransport:
    """
    httpxによるトランスポート

    使用例:
        with HttpxTransport(timeout=10.0) as transport:
            raw = transport.send("POST", url, {"merchantId": ...})
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: Optional[httpx.Client] = None):
        """
        Args:
            timeout: リクエストのタイムアウト（秒）
            client: 既存のhttpx.Client（テストでMockTransportを使う場合など）
        """
        self._http = LoggingClient(logger, client=client, timeout=timeout)

    def send(self, method: str, url: str, body: Optional[Dict[str, Any]] = None) -> str:
        """
        リクエストを送信して生のボディを返す

        Raises:
            TransportFailure: 通信失敗、または2xx以外のステータス
        """
        kwargs: Dict[str, Any] = {"headers": dict(JSON_HEADERS)}
        if body is not None:
            kwargs["json"] = body

        try:
            response = self._http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"[Transport] HTTP status error: {e}")
            raise TransportFailure(
                f"Gateway returned HTTP {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"[Transport] HTTP error: {e}")
            raise TransportFailure(f"Gateway request failed: {e}") from e
        except httpx.InvalidURL as e:
            # HTTPErrorのサブクラスではない
            logger.error(f"[Transport] Invalid URL: {e}")
            raise TransportFailure(f"Gateway request URL invalid: {e}") from e

        return response.text

    def close(self):
        self._http.close()

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
