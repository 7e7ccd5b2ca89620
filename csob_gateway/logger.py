"""
csob_gateway ロギング設定モジュール

環境変数でログレベルを制御可能な統一ロガーを提供します。
ゲートウェイとのHTTPペイロードは自動的にDEBUGレベルで出力されます。
"""

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx


class SensitiveDataFilter(logging.Filter):
    """
    機密データをマスクするフィルター

    メッセージ全体がJSONの場合と、"HTTP_REQUEST_RAW: {...}" のように
    ラベルの後にJSONが続く場合の両方を対象とする。
    """

    SENSITIVE_KEYS = {
        'passphrase', 'client_key_passphrase', 'secret', 'private_key',
        'client_private_key', 'authorization', 'cookie', 'signature'
    }

    MASK = '***MASKED***'

    def filter(self, record: logging.LogRecord) -> bool:
        """ログレコードから機密データをマスク"""
        if hasattr(record, 'msg') and isinstance(record.msg, str):
            if self.MASK in record.msg:
                return True

            start = record.msg.find('{')
            if start < 0:
                return True

            try:
                data = json.loads(record.msg[start:])
            except json.JSONDecodeError:
                return True

            masked = json.dumps(self._mask_sensitive_data(data), ensure_ascii=False)
            record.msg = record.msg[:start] + masked

        return True

    def _mask_sensitive_data(self, data: Any) -> Any:
        """再帰的に機密データをマスク"""
        if isinstance(data, dict):
            return {
                key: self.MASK if key.lower() in self.SENSITIVE_KEYS
                else self._mask_sensitive_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, list):
            return [self._mask_sensitive_data(item) for item in data]
        else:
            return data


class ServiceNameFilter(logging.Filter):
    """ログレコードにサービス名を付与するフィルター"""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'service_name'):
            record.service_name = self.service_name
        return True


class StructuredFormatter(logging.Formatter):
    """構造化ログフォーマッター（JSON出力対応）"""

    def __init__(self, json_format: bool = False):
        super().__init__()
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        """ログレコードをフォーマット"""
        now = datetime.now(timezone.utc)
        if self.json_format:
            log_data = {
                'timestamp': now.isoformat().replace('+00:00', 'Z'),
                'level': record.levelname,
                'logger': record.name,
                'message': record.getMessage(),
                'module': record.module,
                'function': record.funcName,
                'line': record.lineno,
            }

            if hasattr(record, 'service_name'):
                log_data['service'] = record.service_name
            if hasattr(record, 'merchant_id'):
                log_data['merchant_id'] = record.merchant_id

            # 例外情報
            if record.exc_info:
                log_data['exception'] = self.formatException(record.exc_info)

            return json.dumps(log_data, ensure_ascii=False)
        else:
            # 人間が読みやすいフォーマット
            timestamp = now.strftime('%Y-%m-%d %H:%M:%S')
            return (
                f"[{timestamp}] {record.levelname:8s} "
                f"{record.name:30s} | {record.getMessage()}"
            )


def setup_logger(
    name: str,
    level: Optional[str] = None,
    json_format: bool = False,
    service_name: Optional[str] = None
) -> logging.Logger:
    """
    統一ロガーをセットアップ

    Args:
        name: ロガー名（通常は __name__ を渡す）
        level: ログレベル（指定なしの場合は環境変数 LOG_LEVEL を使用）
        json_format: JSON形式で出力するか（デフォルト: False）
        service_name: サービス名（ログに含める）

    Returns:
        設定済みのロガー

    環境変数:
        LOG_LEVEL: ログレベル（DEBUG/INFO/WARNING/ERROR/CRITICAL、デフォルト: INFO）
        LOG_FORMAT: ログフォーマット（json/text、デフォルト: text）
    """
    logger = logging.getLogger(name)

    # 既にハンドラーが設定されている場合はそのまま返す
    if logger.handlers:
        return logger

    if level is None:
        level = os.getenv('LOG_LEVEL', 'INFO').upper()

    log_level = getattr(logging, level, None)
    if not isinstance(log_level, int):
        log_level = logging.INFO
        logger.warning(f"Invalid log level '{level}', using INFO")

    logger.setLevel(log_level)

    if json_format or os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        formatter = StructuredFormatter(json_format=True)
    else:
        formatter = StructuredFormatter(json_format=False)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    # 機密データフィルターを追加
    console_handler.addFilter(SensitiveDataFilter())

    logger.addHandler(console_handler)

    if service_name:
        logger.service_name = service_name
        console_handler.addFilter(ServiceNameFilter(service_name))

    # 親ロガーへの伝播を防止（重複を避ける）
    logger.propagate = False

    return logger


def log_http_request(
    logger: logging.Logger,
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    body: Optional[Any] = None
):
    """
    HTTPリクエストをログ出力（DEBUGレベル）

    Args:
        logger: ロガーインスタンス
        method: HTTPメソッド
        url: リクエストURL
        headers: リクエストヘッダー
        body: リクエストボディ
    """
    logger.info(f"HTTP Request: {method} {url}")

    if logger.isEnabledFor(logging.DEBUG):
        request_data = {
            "type": "HTTP_REQUEST",
            "method": method,
            "url": url,
            "headers": headers or {},
            "body": body
        }
        logger.debug(f"HTTP_REQUEST_RAW: {json.dumps(request_data, ensure_ascii=False, default=str)}")


def log_http_response(
    logger: logging.Logger,
    status_code: int,
    headers: Optional[Dict[str, str]] = None,
    body: Optional[Any] = None,
    duration_ms: Optional[float] = None
):
    """
    HTTPレスポンスをログ出力（DEBUGレベル）

    Args:
        logger: ロガーインスタンス
        status_code: HTTPステータスコード
        headers: レスポンスヘッダー
        body: レスポンスボディ
        duration_ms: リクエスト処理時間（ミリ秒）
    """
    duration_str = f" ({duration_ms:.2f}ms)" if duration_ms else ""
    logger.info(f"HTTP Response: {status_code}{duration_str}")

    if logger.isEnabledFor(logging.DEBUG):
        response_data = {
            "type": "HTTP_RESPONSE",
            "status_code": status_code,
            "headers": headers or {},
            "body": body,
            "duration_ms": duration_ms
        }
        logger.debug(f"HTTP_RESPONSE_RAW: {json.dumps(response_data, ensure_ascii=False, default=str)}")


def log_crypto_operation(
    logger: logging.Logger,
    operation: str,
    algorithm: str,
    key_id: Optional[str] = None,
    success: bool = True
):
    """
    暗号化操作をログ出力（DEBUGレベル）

    Args:
        logger: ロガーインスタンス
        operation: 操作名（"sign", "verify"）
        algorithm: アルゴリズム名
        key_id: 鍵ID
        success: 成功/失敗
    """
    status = "SUCCESS" if success else "FAILED"
    key_str = f" (key: {key_id})" if key_id else ""
    logger.debug(f"Crypto {operation.upper()}: {algorithm}{key_str} - {status}")


def get_logger(name: str, service_name: Optional[str] = None) -> logging.Logger:
    """
    ロガーを取得するヘルパー関数

    Args:
        name: ロガー名（通常は __name__）
        service_name: サービス名

    Returns:
        設定済みロガー
    """
    return setup_logger(name, service_name=service_name)


class LoggingClient:
    """
    ログ記録機能付きhttpx.Clientラッパー

    すべてのHTTP通信を自動的にログに記録し、ペイロードとヘッダーを
    JSON形式で出力します。

    使用例:
        client = LoggingClient(logger, timeout=30.0)
        response = client.post(url, json=data)
    """

    def __init__(self, logger: logging.Logger, client: Optional[httpx.Client] = None, **kwargs):
        """
        Args:
            logger: ロガーインスタンス
            client: 既存のhttpx.Client（テスト用のトランスポートを差し込む場合）
            **kwargs: httpx.Clientに渡す引数（timeout等）
        """
        self.logger = logger
        self._client = client if client is not None else httpx.Client(**kwargs)

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        HTTPリクエストを実行し、ログに記録

        Args:
            method: HTTPメソッド（GET, POST等）
            url: リクエストURL
            **kwargs: httpx.Client.requestに渡す引数

        Returns:
            httpx.Response
        """
        start_time = time.time()

        request_body = kwargs.get('json', kwargs.get('content'))
        if isinstance(request_body, bytes):
            request_body = request_body.decode('utf-8', errors='replace')

        log_http_request(
            logger=self.logger,
            method=method,
            url=str(url),
            headers=kwargs.get('headers', {}),
            body=request_body
        )

        response = self._client.request(method, url, **kwargs)

        duration_ms = (time.time() - start_time) * 1000

        try:
            response_body = response.json()
        except ValueError:
            response_body = response.text

        log_http_response(
            logger=self.logger,
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response_body,
            duration_ms=duration_ms
        )

        return response

    def get(self, url: str, **kwargs) -> httpx.Response:
        """GETリクエスト"""
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> httpx.Response:
        """POSTリクエスト"""
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs) -> httpx.Response:
        """PUTリクエスト"""
        return self.request("PUT", url, **kwargs)

    def close(self):
        """HTTPクライアントをクローズ"""
        self._client.close()

    def __getattr__(self, name):
        """その他の属性は内部クライアントに委譲"""
        return getattr(self._client, name)
