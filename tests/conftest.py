"""
Pytest configuration and fixtures for csob_gateway tests
"""

import pytest

from csob_gateway.canonical import canonical_string
from csob_gateway.crypto import generate_key_pair, sign_encode_string
from csob_gateway.messages import EchoResponse, GeneralResponse


MERCHANT_ID = "012345"
DTTM = "20190925131559"
PAY_ID = "d165e3c4b624fBD"
GATEWAY_URL = "https://gateway.example.com/api/v1.7/"
RETURN_URL = "https://vasobchod.cz/gateway-return"

INIT_CANONICAL = (
    "012345|5547|20190925131559|payment|card|1789600|CZK|true|"
    "https://vasobchod.cz/gateway-return|POST|"
    "Nákup: vasobchod.cz|1|1789600|Lenovo ThinkPad Edge E540|"
    "Poštovné|1|0|Doprava PPL|md|CZ"
)


@pytest.fixture(scope="session")
def client_keys():
    """
    Merchant key pair (signs requests)
    """
    return generate_key_pair()


@pytest.fixture(scope="session")
def gateway_keys():
    """
    Gateway key pair (signs responses)
    """
    return generate_key_pair()


@pytest.fixture(scope="session")
def other_keys():
    """
    Unrelated key pair used to forge signatures
    """
    return generate_key_pair()


@pytest.fixture
def init_example():
    """
    Init message fields from the gateway documentation example
    """
    return {
        "merchantId": MERCHANT_ID,
        "orderNo": "5547",
        "dttm": DTTM,
        "payOperation": "payment",
        "payMethod": "card",
        "totalAmount": 1789600,
        "currency": "CZK",
        "closePayment": True,
        "returnUrl": RETURN_URL,
        "returnMethod": "POST",
        "cart": [
            {
                "name": "Nákup: vasobchod.cz",
                "quantity": 1,
                "amount": 1789600,
                "description": "Lenovo ThinkPad Edge E540",
            },
            {
                "name": "Poštovné",
                "quantity": 1,
                "amount": 0,
                "description": "Doprava PPL",
            },
        ],
        "merchantData": "md",
        "language": "CZ",
    }


def signed_body(fields, response_cls, private_key):
    """
    Build a wire response body signed over the response kind's field order
    """
    values = [fields.get(name) for name in response_cls.signing_field_names()]
    body = dict(fields)
    body["signature"] = sign_encode_string(canonical_string(values), private_key)
    return body


@pytest.fixture
def general_response_fields():
    """
    GeneralResponse fields as sent by the gateway
    """
    return {
        "payId": PAY_ID,
        "dttm": DTTM,
        "resultCode": 0,
        "resultMessage": "OK",
        "paymentStatus": 1,
    }


@pytest.fixture
def general_response_body(general_response_fields, gateway_keys):
    """
    GeneralResponse body signed with the gateway key
    """
    return signed_body(general_response_fields, GeneralResponse, gateway_keys[0])


@pytest.fixture
def echo_response_body(gateway_keys):
    """
    EchoResponse body signed with the gateway key
    """
    fields = {"dttm": DTTM, "resultCode": 0, "resultMessage": "OK"}
    return signed_body(fields, EchoResponse, gateway_keys[0])


class FakeTransport:
    """
    Transport double recording every call

    `responder(method, url, body)` returns the raw body or raises.
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls = []

    def send(self, method, url, body=None):
        self.calls.append((method, url, body))
        return self.responder(method, url, body)


@pytest.fixture
def fake_transport_factory():
    """
    Factory for FakeTransport instances
    """
    return FakeTransport


@pytest.fixture
def sign_body():
    """
    Helper signing a response body: sign_body(fields, response_cls, private_key)
    """
    return signed_body


@pytest.fixture
def init_canonical():
    """
    Expected canonical string of the documented Init example
    """
    return INIT_CANONICAL
