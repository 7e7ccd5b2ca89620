"""
csob_gateway/fields.py

フィールド制約ライブラリ

全てのメッセージ/レスポンスのフィールドはここの型で宣言する。
各型は「値 → 検証済みの値 または 違反」の純粋関数として振る舞う。
文字列 → 整数の変換は resultCode と paymentStatus のみ許可し、
それ以外の型不一致は全て検証エラーとする。
"""

import re
from typing import Annotated, Any, Callable, Literal, Mapping

from pydantic import (
    AfterValidator,
    BeforeValidator,
    Field,
    Strict,
    StringConstraints,
    TypeAdapter,
    ValidationError,
)
from pydantic_core import PydanticCustomError

from csob_gateway.codes import RESULT_CODES, TRANSACTION_LIFECYCLE
from csob_gateway.exceptions import ConstraintViolation


# ========================================
# 基本型（型変換なし）
# ========================================

StrictStr = Annotated[str, Strict()]
StrictInt = Annotated[int, Strict()]
StrictBool = Annotated[bool, Strict()]


def MaxLenStr(max_length: int) -> Any:
    """最大長つき文字列"""
    return Annotated[str, StringConstraints(strict=True, max_length=max_length)]


def TrimmedStr(max_length: int) -> Any:
    """前後の空白を除去してから長さを検査する文字列"""
    return Annotated[
        str,
        StringConstraints(strict=True, strip_whitespace=True, max_length=max_length)
    ]


def ExactLenStr(length: int) -> Any:
    """固定長文字列"""
    return Annotated[
        str,
        StringConstraints(strict=True, min_length=length, max_length=length)
    ]


# ========================================
# 正規表現で制約する文字列
# ========================================

ORDER_NO_PATTERN = r"^[0-9]{1,10}$"

# YYYYMMDDhhmmss（年は2000〜2999）
DTTM_PATTERN = (
    r"^2[0-9]{3}"
    r"(0[1-9]|1[0-2])"
    r"(0[1-9]|[12][0-9]|3[01])"
    r"([01][0-9]|2[0-3])"
    r"[0-5][0-9]"
    r"[0-5][0-9]$"
)

BASE64_PATTERN = r"^[A-Za-z0-9+/]+={0,2}$"

OrderNo = Annotated[str, StringConstraints(strict=True, pattern=ORDER_NO_PATTERN)]
DtTm = Annotated[str, StringConstraints(strict=True, pattern=DTTM_PATTERN)]
Base64Str = Annotated[str, StringConstraints(strict=True, pattern=BASE64_PATTERN)]
MerchantData = Annotated[
    str,
    StringConstraints(strict=True, pattern=BASE64_PATTERN, max_length=255)
]


# ========================================
# 列挙型
# ========================================

PayOperation = Literal["payment", "oneclickPayment", "customPayment"]
PayMethod = Literal["card"]
Currency = Literal["CZK", "EUR", "USD", "GBP", "HUF", "PLN", "HRK", "RON", "NOK", "SEK"]
ReturnMethod = Literal["POST", "GET"]
Language = Literal[
    "CZ", "EN", "DE", "FR", "HU", "IT", "JP", "PL", "PT",
    "RO", "RU", "SK", "ES", "TR", "VN", "HR", "SI"
]


# ========================================
# 長さ/範囲で制約する値
# ========================================

ReturnUrl = MaxLenStr(300)
CustomerId = MaxLenStr(50)
PayId = ExactLenStr(15)
ItemName = TrimmedStr(20)
ItemDescription = TrimmedStr(40)
Quantity = Annotated[int, Strict(), Field(ge=1)]
NonNegativeInt = Annotated[int, Strict(), Field(ge=0)]


# ========================================
# コード表に制約する整数
# ========================================

_NUMERIC = re.compile(r"-?[0-9]+")


def coerce_numeric_string(value: Any) -> Any:
    """数値文字列（"0" など）を整数に変換する。それ以外はそのまま返す"""
    if isinstance(value, str) and _NUMERIC.fullmatch(value.strip()):
        return int(value)
    return value


def one_of_table(table: Mapping[int, str], rule: str) -> Callable[[int], int]:
    """コード表のキーのみ許可するバリデーターを作成"""

    def check(value: int) -> int:
        if value not in table:
            raise PydanticCustomError(
                rule,
                "{value} is not a known code",
                {"value": value}
            )
        return value

    return check


ResultCode = Annotated[
    int,
    Strict(),
    AfterValidator(one_of_table(RESULT_CODES, "result_code")),
    BeforeValidator(coerce_numeric_string),
]

PaymentStatus = Annotated[
    int,
    Strict(),
    AfterValidator(one_of_table(TRANSACTION_LIFECYCLE, "payment_status")),
    BeforeValidator(coerce_numeric_string),
]


def validate_field(type_: Any, value: Any, field: str = "value") -> Any:
    """
    単一の値を制約型で検証

    Args:
        type_: このモジュールの制約型
        value: 検証する値
        field: エラー報告に使うフィールド名

    Returns:
        検証（および許可された変換）済みの値

    Raises:
        ConstraintViolation: 制約違反
    """
    try:
        return TypeAdapter(type_).validate_python(value)
    except ValidationError as e:
        raise ConstraintViolation.from_validation_error(e, field=field) from None
