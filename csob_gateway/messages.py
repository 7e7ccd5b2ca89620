"""
csob_gateway/messages.py

ゲートウェイのメッセージ/レスポンス型

- リクエスト: Echo, Init, Process, Status, Reverse, Close, Refund
- レスポンス: EchoResponse, GeneralResponse, NullResponse
- カート: Cart（Itemの順序付きリスト）

全ての型は不変（frozen）で、フィールドの宣言順がそのまま
canonical stringの順序になる。制約違反は構築時に ConstraintViolation。
署名検証は構築とは別の明示的なステップ。
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional, Type, Union
from urllib.parse import quote_plus

from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict, RootModel, ValidationError
from pydantic_core import PydanticUndefined

from csob_gateway.canonical import SignaturePart, canonical_string
from csob_gateway.codes import OK, lifecycle_name, result_name
from csob_gateway.crypto import VerificationOutcome, sign_encode_string, verify_outcome
from csob_gateway.exceptions import ConstraintViolation, ResponseParseError, SignatureInvalid
from csob_gateway.fields import (
    Base64Str,
    Currency,
    CustomerId,
    DtTm,
    ItemDescription,
    ItemName,
    Language,
    MerchantData,
    NonNegativeInt,
    OrderNo,
    PayId,
    PayMethod,
    PayOperation,
    PaymentStatus,
    Quantity,
    ResultCode,
    ReturnMethod,
    ReturnUrl,
    StrictBool,
    StrictInt,
    StrictStr,
)

DTTM_FORMAT = "%Y%m%d%H%M%S"


def timestamp(moment: Optional[datetime] = None) -> str:
    """dttm形式（YYYYMMDDhhmmss）のタイムスタンプ"""
    return (moment or datetime.now()).strftime(DTTM_FORMAT)


class GatewayModel(BaseModel):
    """制約違反を ConstraintViolation として送出する不変モデル"""

    model_config = ConfigDict(frozen=True, extra='forbid')

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConstraintViolation.from_validation_error(e, model=type(self).__name__) from None

    # ネストしたモデルはpydantic-coreが直接検証し、エラーの位置（cart.0.name）を保つ
    __init__.__pydantic_base_init__ = True  # type: ignore[attr-defined]


# ========================================
# カート
# ========================================

class Item(SignaturePart, GatewayModel):
    """カートの商品（名前と説明は前後の空白を除去して長さを検査）"""

    name: ItemName
    quantity: Quantity
    amount: NonNegativeInt
    description: ItemDescription


class Cart(RootModel[List[Item]]):
    """Itemの順序付きリスト。空のカートは空文字列になる"""

    model_config = ConfigDict(frozen=True)

    def __init__(self, root: Any = PydanticUndefined, **data: Any) -> None:
        try:
            super().__init__(root, **data)
        except ValidationError as e:
            raise ConstraintViolation.from_validation_error(e, model="Cart") from None

    __init__.__pydantic_base_init__ = True  # type: ignore[attr-defined]

    def canonical_string(self) -> str:
        return canonical_string(item.canonical_string() for item in self.root)

    def __iter__(self) -> Iterator[Item]:
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> Item:
        return self.root[index]


# ========================================
# リクエスト
# ========================================

@dataclass(frozen=True)
class GatewayRequest:
    """送信するHTTP呼び出しの記述"""

    method: str
    path: str
    body: Optional[Dict[str, Any]] = None


class Signable(SignaturePart):
    """秘密鍵で署名できるメッセージ"""

    def sign(self, private_key: rsa.RSAPrivateKey) -> str:
        return sign_encode_string(self.canonical_string(), private_key)

    def signed(self, private_key: rsa.RSAPrivateKey) -> Dict[str, Any]:
        """
        署名付きのJSONボディ

        宣言順の全フィールド（値のないオプションは省略）の後に
        signatureを追加する。
        """
        body = self.model_dump(mode='json', exclude_none=True)
        body['signature'] = self.sign(private_key)
        return body

    def to_request(self, private_key: rsa.RSAPrivateKey) -> GatewayRequest:
        return GatewayRequest(self.http_method, self.path, self.signed(private_key))


class GetRequest(Signable):
    """署名をURLに埋め込むGETメッセージ"""

    def get_url(self, private_key: rsa.RSAPrivateKey) -> str:
        signature = quote_plus(self.sign(private_key))
        return f"{self.path}/{self.merchantId}/{self.payId}/{self.dttm}/{signature}"

    def to_request(self, private_key: rsa.RSAPrivateKey) -> GatewayRequest:
        return GatewayRequest(self.http_method, self.get_url(private_key))


class AbstractMessage(Signable, GatewayModel):
    path: ClassVar[str]
    http_method: ClassVar[str] = "POST"


class Echo(AbstractMessage):
    path: ClassVar[str] = "echo"

    merchantId: StrictStr
    dttm: DtTm


class Init(AbstractMessage):
    """決済の開始"""

    path: ClassVar[str] = "payment/init"

    merchantId: StrictStr
    orderNo: OrderNo
    dttm: DtTm
    payOperation: PayOperation
    payMethod: PayMethod
    totalAmount: StrictInt
    currency: Currency
    closePayment: StrictBool
    returnUrl: ReturnUrl
    returnMethod: ReturnMethod
    cart: Cart
    merchantData: Optional[MerchantData] = None
    customerId: Optional[CustomerId] = None
    language: Language


class GeneralMessage(AbstractMessage):
    merchantId: StrictStr
    payId: PayId
    dttm: DtTm


class Process(GetRequest, GeneralMessage):
    # ブラウザから送信される
    path: ClassVar[str] = "payment/process"
    http_method: ClassVar[str] = "GET"


class Status(GetRequest, GeneralMessage):
    path: ClassVar[str] = "payment/status"
    http_method: ClassVar[str] = "GET"


class Reverse(GeneralMessage):
    path: ClassVar[str] = "payment/reverse"
    http_method: ClassVar[str] = "PUT"


class Close(GeneralMessage):
    path: ClassVar[str] = "payment/close"
    http_method: ClassVar[str] = "PUT"

    amount: Optional[StrictInt] = None


class Refund(GeneralMessage):
    path: ClassVar[str] = "payment/refund"
    http_method: ClassVar[str] = "PUT"

    amount: Optional[StrictInt] = None


# ========================================
# レスポンス
# ========================================

class FailureKind(str, Enum):
    """NullResponseを合成した理由"""

    TRANSPORT = "transport"
    PARSE = "parse"
    SIGNATURE_INVALID = "signature_invalid"


class Verifiable(SignaturePart):
    """ゲートウェイの公開鍵で検証できるレスポンス"""

    def verification(self, public_key: rsa.RSAPublicKey) -> VerificationOutcome:
        return verify_outcome(self.signature, self.canonical_string(), public_key)

    def verify(self, public_key: rsa.RSAPublicKey) -> bool:
        return self.verification(public_key).is_valid

    def ensure_verified(self, public_key: rsa.RSAPublicKey) -> "Verifiable":
        """検証に失敗した場合は SignatureInvalid を送出"""
        outcome = self.verification(public_key)
        if not outcome.is_valid:
            raise SignatureInvalid(
                f"{type(self).__name__} signature invalid",
                details={"outcome": outcome.value}
            )
        return self


class ResultMixin:
    @property
    def ok(self) -> bool:
        return self.resultCode == OK

    @property
    def result_name(self) -> str:
        return result_name(self.resultCode)


class AbstractResponse(ResultMixin, Verifiable, GatewayModel):
    # 未知のキーは無視する
    model_config = ConfigDict(frozen=True, extra='ignore')

    signature: Optional[Base64Str] = None

    @classmethod
    def from_wire(cls, body: Union[str, bytes, Mapping[str, Any]]) -> "AbstractResponse":
        """
        ゲートウェイの生のJSONからレスポンスを構築

        Args:
            body: JSON文字列、またはデコード済みの辞書

        Raises:
            ResponseParseError: JSONオブジェクトではない
            ConstraintViolation: フィールドが制約に違反
        """
        if isinstance(body, (str, bytes)):
            try:
                data = json.loads(body)
            except ValueError as e:
                raise ResponseParseError(f"Response body is not JSON: {e}") from e
        else:
            data = body

        if not isinstance(data, Mapping):
            raise ResponseParseError(
                f"Response body is not a JSON object: {type(data).__name__}"
            )

        known = {key: value for key, value in data.items() if key in cls.model_fields}
        return cls(**known)


class EchoResponse(AbstractResponse):
    dttm: DtTm
    resultCode: ResultCode
    resultMessage: StrictStr
    signature: Base64Str


class GeneralResponse(AbstractResponse):
    payId: PayId
    dttm: DtTm
    resultCode: ResultCode
    resultMessage: StrictStr
    paymentStatus: Optional[PaymentStatus] = None
    authCode: Optional[StrictStr] = None
    customerCode: Optional[StrictStr] = None
    statusDetail: Optional[StrictStr] = None

    @property
    def payment_stage(self) -> Optional[str]:
        if self.paymentStatus is None:
            return None
        return lifecycle_name(self.paymentStatus)


class NullResponse(ResultMixin, GatewayModel):
    """
    ローカルで合成する失敗レスポンス

    通信/解析/署名検証の失敗時に返す。ゲートウェイからは受信しない。
    """

    resultCode: ResultCode
    resultMessage: StrictStr
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def signature_invalid(self) -> bool:
        return self.failure is FailureKind.SIGNATURE_INVALID


Response = Union[EchoResponse, GeneralResponse, NullResponse]

MESSAGE_KINDS: Mapping[str, Type[AbstractMessage]] = {
    cls.__name__: cls for cls in (Echo, Init, Process, Status, Reverse, Close, Refund)
}

RESPONSE_KINDS: Mapping[str, Type[BaseModel]] = {
    cls.__name__: cls for cls in (EchoResponse, GeneralResponse, NullResponse)
}
