"""
csob_gateway/exceptions.py

ゲートウェイクライアントの例外定義
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ValidationError


class GatewayErrorCode(str, Enum):
    """クライアント側で発生するエラーの種別"""

    CONSTRAINT_VIOLATION = "constraint_violation"
    SIGNATURE_INVALID = "signature_invalid"
    TRANSPORT_FAILURE = "transport_failure"
    RESPONSE_PARSE_ERROR = "response_parse_error"
    CONFIGURATION_ERROR = "configuration_error"
    CRYPTO_ERROR = "crypto_error"


class GatewayException(Exception):
    """ゲートウェイクライアント例外のベースクラス"""

    def __init__(
        self,
        error_code: GatewayErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{error_code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """エラーを辞書形式で返す"""
        return {
            "error_code": self.error_code.value,
            "error_message": self.message,
            "details": self.details
        }


class ConstraintViolation(GatewayException):
    """
    フィールドが検証ルールに違反した

    Attributes:
        field: 違反したフィールド名（ネストは "cart.0.name" 形式）
        rule: 違反したルール名（pydanticのエラー種別）
        value: 違反した値
        violations: 全ての違反（先頭が field/rule/value に対応）
    """

    def __init__(
        self,
        field: str,
        rule: str,
        value: Any,
        model: Optional[str] = None,
        violations: Optional[List[Dict[str, Any]]] = None,
        reason: Optional[str] = None
    ):
        self.field = field
        self.rule = rule
        self.value = value
        self.model = model
        self.violations = violations or [{"field": field, "rule": rule, "value": value}]
        target = f"{model}.{field}" if model else field
        message = f"{target} violates {rule}: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            GatewayErrorCode.CONSTRAINT_VIOLATION,
            message,
            details={"field": field, "rule": rule, "value": repr(value), "model": model}
        )

    @classmethod
    def from_validation_error(
        cls,
        error: ValidationError,
        model: Optional[str] = None,
        field: Optional[str] = None
    ) -> "ConstraintViolation":
        """pydanticのValidationErrorから変換"""
        violations = []
        for item in error.errors():
            loc = ".".join(str(part) for part in item["loc"]) or (field or "")
            violations.append({
                "field": loc,
                "rule": item["type"],
                "value": item.get("input"),
                "reason": item.get("msg"),
            })

        first = violations[0]
        return cls(
            field=first["field"],
            rule=first["rule"],
            value=first["value"],
            model=model,
            violations=violations,
            reason=first["reason"]
        )


class SignatureInvalid(GatewayException):
    """レスポンス署名の検証失敗（信頼できないデータ）"""

    def __init__(self, message: str = "Response signature invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__(GatewayErrorCode.SIGNATURE_INVALID, message, details)


class TransportFailure(GatewayException):
    """通信レイヤーの失敗（ネットワーク、タイムアウト、HTTPステータス）"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        details = {"status_code": status_code} if status_code is not None else None
        super().__init__(GatewayErrorCode.TRANSPORT_FAILURE, message, details)


class ResponseParseError(GatewayException):
    """レスポンスボディを解釈できない"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(GatewayErrorCode.RESPONSE_PARSE_ERROR, message, details)


class ConfigurationError(GatewayException):
    """設定が不足または曖昧"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(GatewayErrorCode.CONFIGURATION_ERROR, message, details)


class CryptoError(GatewayException):
    """鍵素材の読み込みエラー"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(GatewayErrorCode.CRYPTO_ERROR, message, details)
