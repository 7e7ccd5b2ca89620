"""
csob_gateway

カード決済ゲートウェイのメッセージ検証・署名・検証クライアント
"""

from csob_gateway.client import GatewayClient
from csob_gateway.codes import APPLICATION_ERROR, RESULT_CODES, TRANSACTION_LIFECYCLE
from csob_gateway.config import Configuration, configuration_from_env, configuration_from_yaml, create_client
from csob_gateway.exceptions import (
    ConfigurationError,
    ConstraintViolation,
    CryptoError,
    GatewayException,
    ResponseParseError,
    SignatureInvalid,
    TransportFailure,
)
from csob_gateway.messages import (
    Cart,
    Close,
    Echo,
    EchoResponse,
    GeneralResponse,
    Init,
    Item,
    NullResponse,
    Process,
    Refund,
    Reverse,
    Status,
)

__all__ = [
    "APPLICATION_ERROR",
    "Cart",
    "Close",
    "Configuration",
    "ConfigurationError",
    "ConstraintViolation",
    "CryptoError",
    "Echo",
    "EchoResponse",
    "GatewayClient",
    "GatewayException",
    "GeneralResponse",
    "Init",
    "Item",
    "NullResponse",
    "Process",
    "RESULT_CODES",
    "Refund",
    "ResponseParseError",
    "Reverse",
    "SignatureInvalid",
    "Status",
    "TRANSACTION_LIFECYCLE",
    "TransportFailure",
    "configuration_from_env",
    "configuration_from_yaml",
    "create_client",
]
