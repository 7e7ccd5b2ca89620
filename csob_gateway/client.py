"""
csob_gateway/client.py

ゲートウェイクライアント

メッセージの構築 → 署名 → 送信 → レスポンスの解析 → 署名検証 を行う。
通信/解析の失敗は NullResponse（resultCode=10000）に変換し、
呼び出し側は常に response.ok で判定できる。署名検証の失敗も
NullResponse になるが、failure=SIGNATURE_INVALID で区別できる。
送信前のメッセージ構築の制約違反は ConstraintViolation として送出する。
"""

from typing import Iterable, Optional, Type, Union

from cryptography.hazmat.primitives.asymmetric import rsa

from csob_gateway.codes import APPLICATION_ERROR
from csob_gateway.exceptions import (
    ConstraintViolation,
    ResponseParseError,
    SignatureInvalid,
    TransportFailure,
)
from csob_gateway.logger import get_logger
from csob_gateway.messages import (
    AbstractMessage,
    AbstractResponse,
    Close,
    Echo,
    EchoResponse,
    FailureKind,
    GeneralResponse,
    Init,
    Item,
    NullResponse,
    Process,
    Refund,
    Response,
    Reverse,
    Status,
    timestamp,
)
from csob_gateway.transport import HttpxTransport, Transport

logger = get_logger(__name__, service_name='csob_gateway')

DEFAULT_PAY_OPERATION = "payment"
DEFAULT_PAY_METHOD = "card"


class GatewayClient:
    """
    ゲートウェイクライアント

    鍵は生成時に一度だけ渡され、以降は変更されない。
    複数スレッドから共有してよい（状態を持つのはトランスポートのみ）。
    """

    def __init__(
        self,
        url: str,
        return_url: str,
        merchant_id: str,
        client_key: rsa.RSAPrivateKey,
        service_key: rsa.RSAPublicKey,
        transport: Optional[Transport] = None
    ):
        """
        Args:
            url: ゲートウェイのベースURL（例: https://iapi.iplatebnibrana.csob.cz/api/v1.7/）
            return_url: 決済後にブラウザを戻すURL
            merchant_id: マーチャントID
            client_key: マーチャントの秘密鍵（リクエスト署名用）
            service_key: ゲートウェイの公開鍵（レスポンス検証用）
            transport: HTTP送信（省略時はHttpxTransport）
        """
        self.url_base = url if url.endswith("/") else f"{url}/"
        self.return_url = return_url
        self.merchant_id = merchant_id
        self._client_key = client_key
        self._service_key = service_key
        self.transport = transport if transport is not None else HttpxTransport()

    # ========================================
    # 操作
    # ========================================

    def echo(self) -> Union[EchoResponse, NullResponse]:
        message = Echo(merchantId=self.merchant_id, dttm=self.timestamp())
        return self.process_message(message, EchoResponse)

    def init(
        self,
        order_no: str,
        total_amount: int,
        currency: str,
        cart: Union[Item, Iterable[Item]],
        language: str,
        *,
        merchant_data: Optional[str] = None,
        customer_id: Optional[str] = None,
        pay_operation: str = DEFAULT_PAY_OPERATION,
        pay_method: str = DEFAULT_PAY_METHOD,
        close_payment: bool = True,
        return_method: str = "POST"
    ) -> Union[GeneralResponse, NullResponse]:
        """
        決済を開始

        Args:
            order_no: 注文番号（1〜10桁の数字）
            total_amount: 合計金額（最小通貨単位）
            currency: 通貨コード
            cart: Item、またはItemのリスト
            language: 決済画面の言語
        """
        items = [cart] if isinstance(cart, Item) else list(cart)
        message = Init(
            merchantId=self.merchant_id,
            orderNo=order_no,
            dttm=self.timestamp(),
            payOperation=pay_operation,
            payMethod=pay_method,
            totalAmount=total_amount,
            currency=currency,
            closePayment=close_payment,
            returnUrl=self.return_url,
            returnMethod=return_method,
            cart=items,
            merchantData=merchant_data,
            customerId=customer_id,
            language=language,
        )
        return self.process_message(message, GeneralResponse)

    def process_url(self, pay_id: str) -> str:
        """ブラウザをリダイレクトする決済画面のURL（送信はしない）"""
        message = Process(merchantId=self.merchant_id, payId=pay_id, dttm=self.timestamp())
        return self.url_base + message.get_url(self._client_key)

    def status(self, pay_id: str) -> Union[GeneralResponse, NullResponse]:
        message = Status(merchantId=self.merchant_id, payId=pay_id, dttm=self.timestamp())
        return self.process_message(message, GeneralResponse)

    def reverse(self, pay_id: str) -> Union[GeneralResponse, NullResponse]:
        message = Reverse(merchantId=self.merchant_id, payId=pay_id, dttm=self.timestamp())
        return self.process_message(message, GeneralResponse)

    def close(self, pay_id: str, amount: Optional[int] = None) -> Union[GeneralResponse, NullResponse]:
        message = Close(
            merchantId=self.merchant_id, payId=pay_id, dttm=self.timestamp(), amount=amount
        )
        return self.process_message(message, GeneralResponse)

    def refund(self, pay_id: str, amount: Optional[int] = None) -> Union[GeneralResponse, NullResponse]:
        message = Refund(
            merchantId=self.merchant_id, payId=pay_id, dttm=self.timestamp(), amount=amount
        )
        return self.process_message(message, GeneralResponse)

    # ========================================
    # 送信と検証
    # ========================================

    def process_message(
        self,
        message: AbstractMessage,
        response_cls: Type[AbstractResponse]
    ) -> Response:
        """
        署名済みメッセージを送信し、検証済みのレスポンスを返す

        Returns:
            検証済みレスポンス、または失敗を表す NullResponse
        """
        request = message.to_request(self._client_key)
        url = self.url_base + request.path

        try:
            raw = self.transport.send(request.method, url, request.body)
            response = self.build_response(raw, response_cls)
        except TransportFailure as e:
            logger.error(f"[GatewayClient] {type(message).__name__} transport failure: {e.message}")
            return self.null_response(e.message, FailureKind.TRANSPORT)
        except (ResponseParseError, ConstraintViolation) as e:
            logger.error(f"[GatewayClient] {type(message).__name__} response invalid: {e.message}")
            return self.null_response(e.message, FailureKind.PARSE)
        except SignatureInvalid as e:
            logger.warning(f"[GatewayClient] {type(message).__name__} response rejected: {e.message}")
            return self.null_response(e.message, FailureKind.SIGNATURE_INVALID)

        logger.info(
            f"[GatewayClient] {type(message).__name__}: resultCode={response.resultCode} "
            f"({response.result_name})",
            extra={"merchant_id": self.merchant_id}
        )
        return response

    def build_response(self, raw: str, response_cls: Type[AbstractResponse]) -> AbstractResponse:
        """
        生のボディを解析して検証

        Raises:
            ResponseParseError, ConstraintViolation: 解析失敗
            SignatureInvalid: 署名検証失敗
        """
        response = response_cls.from_wire(raw)
        response.ensure_verified(self._service_key)
        return response

    def verify(self, response: AbstractResponse) -> bool:
        """ゲートウェイの公開鍵でレスポンスを検証（returnUrlに戻ってきた結果など）"""
        return response.verify(self._service_key)

    @staticmethod
    def null_response(message: str, failure: FailureKind) -> NullResponse:
        return NullResponse(resultCode=APPLICATION_ERROR, resultMessage=message, failure=failure)

    @staticmethod
    def timestamp() -> str:
        return timestamp()
