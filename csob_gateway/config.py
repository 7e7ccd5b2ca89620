"""
csob_gateway/config.py

設定の読み込みとクライアントの生成

設定の取得元:
- 辞書: configuration(mapping)
- 環境変数: configuration_from_env()（CSOB_GATEWAY_URL など）
- YAMLファイル: configuration_from_yaml(path, env, code=None)

鍵はPEM文字列で持ち、create_client() で一度だけ読み込む。
"""

import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from csob_gateway.client import GatewayClient
from csob_gateway.crypto import load_private_key, load_public_key
from csob_gateway.exceptions import ConfigurationError
from csob_gateway.logger import get_logger
from csob_gateway.transport import DEFAULT_TIMEOUT, HttpxTransport, Transport

logger = get_logger(__name__, service_name='csob_gateway')

ENV_PREFIX = "CSOB_"

REQUIRED_KEYS = (
    "gateway_url",
    "return_url",
    "merchant_id",
    "client_private_key",
    "service_public_key",
)

# PEMをファイルから読む場合のキー
KEY_FILE_KEYS = {
    "client_private_key": "client_private_key_file",
    "service_public_key": "service_public_key_file",
}


class Configuration(BaseModel):
    """ゲートウェイクライアントの設定"""

    model_config = ConfigDict(frozen=True)

    gateway_url: str
    return_url: str
    merchant_id: str
    client_private_key: str = Field(..., repr=False)
    service_public_key: str = Field(..., repr=False)
    client_key_passphrase: Optional[str] = Field(None, repr=False)
    timeout: float = DEFAULT_TIMEOUT


def _read_key_file(path: Any) -> str:
    try:
        return Path(str(path)).expanduser().read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read key file {path}: {e}") from e


def configuration(mapping: Mapping[str, Any]) -> Configuration:
    """
    辞書から設定を作成

    client_private_key / service_public_key の代わりに
    *_file キーでPEMファイルのパスを指定できる。

    Raises:
        ConfigurationError: 必須キーの不足
    """
    values = {key: value for key, value in mapping.items() if value is not None}

    for key, file_key in KEY_FILE_KEYS.items():
        if key not in values and file_key in values:
            values[key] = _read_key_file(values[file_key])
        values.pop(file_key, None)

    missing = [key for key in REQUIRED_KEYS if not values.get(key)]
    if missing:
        raise ConfigurationError(
            f"Missing configuration keys: {', '.join(missing)}",
            details={"missing": missing}
        )

    known = {key: value for key, value in values.items() if key in Configuration.model_fields}
    try:
        return Configuration(**known)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def configuration_from_env(prefix: str = ENV_PREFIX) -> Configuration:
    """
    環境変数から設定を作成

    環境変数:
        CSOB_GATEWAY_URL, CSOB_RETURN_URL, CSOB_MERCHANT_ID
        CSOB_CLIENT_PRIVATE_KEY または CSOB_CLIENT_PRIVATE_KEY_FILE
        CSOB_SERVICE_PUBLIC_KEY または CSOB_SERVICE_PUBLIC_KEY_FILE
        CSOB_CLIENT_KEY_PASSPHRASE（任意）
        CSOB_TIMEOUT（任意、秒）
    """
    keys = list(REQUIRED_KEYS) + list(KEY_FILE_KEYS.values()) + ["client_key_passphrase", "timeout"]
    mapping = {key: os.getenv(f"{prefix}{key.upper()}") for key in keys}
    return configuration(mapping)


def select_block(block: Mapping[str, Any], code: Optional[str] = None) -> Mapping[str, Any]:
    """
    環境ブロックから1つのゲートウェイ設定を選択

    優先順位:
    1. code が指定されていれば、そのキーの設定（なければエラー）
    2. ブロック自体に gateway_url があれば、そのブロック
    3. エントリが1つだけならそのエントリ
    それ以外（複数エントリでcode未指定）は曖昧なのでエラー
    """
    if code is not None:
        selected = block.get(code)
        if not isinstance(selected, Mapping):
            raise ConfigurationError(f"No gateway configuration for code '{code}'")
        return selected

    if "gateway_url" in block:
        return block

    entries = [value for value in block.values() if isinstance(value, Mapping)]
    if len(entries) == 1:
        return entries[0]

    raise ConfigurationError(
        "Ambiguous gateway configuration: specify a code",
        details={"codes": sorted(str(key) for key in block.keys())}
    )


def configuration_from_yaml(path: Any, env: str, code: Optional[str] = None) -> Configuration:
    """
    YAMLファイルから設定を作成

    ファイル内の ${VAR} は環境変数で展開する。

    Args:
        path: YAMLファイルのパス
        env: 環境名（development, production など）
        code: 複数のゲートウェイ設定がある場合の選択キー
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
        data = YAML(typ="safe").load(os.path.expandvars(text))
    except (OSError, UnicodeError, YAMLError) as e:
        raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e

    if not isinstance(data, Mapping) or not isinstance(data.get(env), Mapping):
        raise ConfigurationError(f"No configuration for environment '{env}' in {path}")

    return configuration(select_block(data[env], code))


def create_client(conf: Configuration, transport: Optional[Transport] = None) -> GatewayClient:
    """設定から鍵を読み込み、クライアントを生成"""
    logger.info(f"[Config] Creating gateway client for merchant {conf.merchant_id}")
    return GatewayClient(
        conf.gateway_url,
        conf.return_url,
        conf.merchant_id,
        load_private_key(conf.client_private_key, conf.client_key_passphrase),
        load_public_key(conf.service_public_key),
        transport=transport if transport is not None else HttpxTransport(timeout=conf.timeout),
    )
