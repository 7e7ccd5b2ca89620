"""
Tests for request messages in csob_gateway/messages.py

Tests cover:
- Fail-fast construction with ConstraintViolation
- Immutability
- Signed JSON bodies and signature placement
- GET URLs with embedded signatures
- Transport semantics of each message kind
"""

from datetime import datetime
from urllib.parse import unquote_plus

import pytest
from pydantic import ValidationError

from csob_gateway.crypto import decode_verify_string
from csob_gateway.exceptions import ConstraintViolation
from csob_gateway.messages import (
    MESSAGE_KINDS,
    Cart,
    Close,
    Echo,
    GatewayRequest,
    Init,
    Item,
    Process,
    Refund,
    Reverse,
    Status,
    timestamp,
)

PAY_ID = "d165e3c4b624fBD"
GENERAL_FIELDS = {"merchantId": "012345", "payId": PAY_ID, "dttm": "20190925131559"}


class TestInitConstruction:
    """Test Init message validation"""

    def test_valid_init(self, init_example):
        """Test documented example builds"""
        message = Init(**init_example)

        assert message.orderNo == "5547"
        assert isinstance(message.cart, Cart)
        assert len(message.cart) == 2
        assert message.cart[1].name == "Poštovné"
        assert message.customerId is None

    def test_accepts_item_instances(self, init_example):
        """Test cart accepts Item instances as well as dicts"""
        init_example["cart"] = [Item(**item) for item in init_example["cart"]]
        assert len(Init(**init_example).cart) == 2

    def test_invalid_order_no(self, init_example):
        """Test invalid order number names field, rule and value"""
        init_example["orderNo"] = "01234567890"

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        error = exc_info.value
        assert error.field == "orderNo"
        assert error.rule == "string_pattern_mismatch"
        assert error.value == "01234567890"
        assert error.model == "Init"
        assert error.to_dict()["error_code"] == "constraint_violation"

    def test_amount_not_coerced(self, init_example):
        """Test numeric strings are not coerced for totalAmount"""
        init_example["totalAmount"] = "1789600"

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        assert exc_info.value.field == "totalAmount"

    def test_close_payment_not_coerced(self, init_example):
        """Test closePayment must be a real boolean"""
        init_example["closePayment"] = "true"

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        assert exc_info.value.field == "closePayment"

    def test_unknown_currency(self, init_example):
        """Test closed currency enum"""
        init_example["currency"] = "JPY"

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        assert exc_info.value.field == "currency"

    def test_missing_field(self, init_example):
        """Test missing required field"""
        del init_example["language"]

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        assert exc_info.value.field == "language"
        assert exc_info.value.rule == "missing"

    def test_unknown_field(self, init_example):
        """Test undeclared fields are refused"""
        init_example["signature"] = "ABCD"

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        assert exc_info.value.rule == "extra_forbidden"

    def test_invalid_nested_item(self, init_example):
        """Test invalid cart item fails the whole message"""
        init_example["cart"][0]["name"] = "x" * 21

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        assert exc_info.value.field == "cart.0.name"
        assert exc_info.value.model == "Init"
        assert exc_info.value.rule == "string_too_long"

    def test_invalid_second_item_names_its_index(self, init_example):
        """Test the failing item is identified by its position in the cart"""
        init_example["cart"][1]["description"] = "x" * 41

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        assert exc_info.value.field == "cart.1.description"
        assert exc_info.value.model == "Init"

    def test_all_cart_violations_reported(self, init_example):
        """Test every failing item field is listed"""
        init_example["cart"][0]["quantity"] = 0
        init_example["cart"][1]["amount"] = -1

        with pytest.raises(ConstraintViolation) as exc_info:
            Init(**init_example)

        fields = [violation["field"] for violation in exc_info.value.violations]
        assert fields == ["cart.0.quantity", "cart.1.amount"]

    def test_item_quantity_lower_bound(self):
        """Test item quantity must be at least 1"""
        with pytest.raises(ConstraintViolation) as exc_info:
            Item(name="Item", quantity=0, amount=1, description="Desc")

        assert exc_info.value.field == "quantity"

    def test_cart_rejects_non_items(self):
        """Test cart refuses values that are not items"""
        with pytest.raises(ConstraintViolation):
            Cart(["not an item"])


class TestImmutability:
    """Test messages are immutable once constructed"""

    def test_cannot_assign(self, init_example):
        """Test attribute assignment is refused"""
        message = Init(**init_example)

        with pytest.raises(ValidationError):
            message.orderNo = "1"

    def test_item_cannot_assign(self):
        """Test item assignment is refused"""
        item = Item(name="Item", quantity=1, amount=1, description="Desc")

        with pytest.raises(ValidationError):
            item.amount = 0


class TestSignedBody:
    """Test signed JSON bodies for POST/PUT messages"""

    def test_init_body_order(self, init_example, client_keys):
        """Test declared fields come first and signature last"""
        body = Init(**init_example).signed(client_keys[0])

        assert list(body.keys()) == [
            "merchantId", "orderNo", "dttm", "payOperation", "payMethod",
            "totalAmount", "currency", "closePayment", "returnUrl",
            "returnMethod", "cart", "merchantData", "language", "signature",
        ]
        assert body["closePayment"] is True
        assert body["cart"][0] == {
            "name": "Nákup: vasobchod.cz",
            "quantity": 1,
            "amount": 1789600,
            "description": "Lenovo ThinkPad Edge E540",
        }

    def test_init_signature_verifies(self, init_example, init_canonical, client_keys):
        """Test the body signature covers the canonical string"""
        private_key, public_key = client_keys
        body = Init(**init_example).signed(private_key)

        assert decode_verify_string(body["signature"], init_canonical, public_key)

    def test_signature_not_in_canonical(self, init_example, client_keys):
        """Test signing does not change the canonical string"""
        message = Init(**init_example)
        before = message.canonical_string()
        message.signed(client_keys[0])

        assert message.canonical_string() == before

    def test_close_without_amount(self, client_keys):
        """Test absent optional amount is omitted from the body"""
        body = Close(**GENERAL_FIELDS).signed(client_keys[0])

        assert "amount" not in body
        assert list(body.keys()) == ["merchantId", "payId", "dttm", "signature"]

    def test_refund_with_amount(self, client_keys):
        """Test amount is included when present"""
        private_key, public_key = client_keys
        body = Refund(**GENERAL_FIELDS, amount=1000).signed(private_key)

        assert body["amount"] == 1000
        assert decode_verify_string(
            body["signature"], "012345|d165e3c4b624fBD|20190925131559|1000", public_key
        )


class TestGetUrl:
    """Test GET requests with URL-embedded signatures"""

    def test_status_url(self, client_keys):
        """Test status URL layout"""
        private_key, public_key = client_keys
        url = Status(**GENERAL_FIELDS).get_url(private_key)

        segments = url.split("/")
        assert segments[:5] == ["payment", "status", "012345", PAY_ID, "20190925131559"]
        assert len(segments) == 6

        signature = unquote_plus(segments[5])
        assert decode_verify_string(
            signature, "012345|d165e3c4b624fBD|20190925131559", public_key
        )

    def test_signature_is_url_encoded(self, client_keys):
        """Test base64 characters are escaped in the URL"""
        url = Process(**GENERAL_FIELDS).get_url(client_keys[0])
        encoded = url.rsplit("/", 1)[1]

        assert "+" not in encoded
        assert "=" not in encoded

    def test_get_request_has_no_body(self, client_keys):
        """Test GET request description"""
        request = Process(**GENERAL_FIELDS).to_request(client_keys[0])

        assert request.method == "GET"
        assert request.path.startswith("payment/process/012345/")
        assert request.body is None

    def test_invalid_pay_id(self):
        """Test payId length is enforced"""
        with pytest.raises(ConstraintViolation) as exc_info:
            Status(merchantId="012345", payId="short", dttm="20190925131559")

        assert exc_info.value.field == "payId"


class TestTransportSemantics:
    """Test method and path of each message kind"""

    @pytest.mark.parametrize("kind,method,path", [
        ("Echo", "POST", "echo"),
        ("Init", "POST", "payment/init"),
        ("Process", "GET", "payment/process"),
        ("Status", "GET", "payment/status"),
        ("Reverse", "PUT", "payment/reverse"),
        ("Close", "PUT", "payment/close"),
        ("Refund", "PUT", "payment/refund"),
    ])
    def test_registry(self, kind, method, path):
        """Test each kind's transport table entry"""
        cls = MESSAGE_KINDS[kind]
        assert cls.http_method == method
        assert cls.path == path

    def test_post_request(self, client_keys):
        """Test POST request description"""
        request = Echo(merchantId="012345", dttm="20190925131559").to_request(client_keys[0])

        assert isinstance(request, GatewayRequest)
        assert request.method == "POST"
        assert request.path == "echo"
        assert request.body["merchantId"] == "012345"
        assert "signature" in request.body

    def test_put_request(self, client_keys):
        """Test PUT request description"""
        request = Reverse(**GENERAL_FIELDS).to_request(client_keys[0])

        assert request.method == "PUT"
        assert request.path == "payment/reverse"
        assert list(request.body.keys())[-1] == "signature"


class TestTimestamp:
    """Test dttm helper"""

    def test_format(self):
        """Test YYYYMMDDhhmmss format"""
        assert timestamp(datetime(2019, 9, 25, 13, 15, 59)) == "20190925131559"

    def test_now_is_valid_dttm(self):
        """Test current timestamp passes the dttm constraint"""
        Echo(merchantId="012345", dttm=timestamp())
