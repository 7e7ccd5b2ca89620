"""
Tests for csob_gateway/canonical.py

Tests cover:
- Value stringification
- Skipping of absent and empty values
- Declared field order of messages, items and carts
- The documented Init signing string
"""

import pytest

from csob_gateway.canonical import canonical_string, stringify
from csob_gateway.messages import Cart, Close, Echo, Init, Item


class TestStringify:
    """Test value stringification"""

    def test_booleans(self):
        """Test booleans render as lowercase words"""
        assert stringify(True) == "true"
        assert stringify(False) == "false"

    def test_integers(self):
        """Test integers render in decimal"""
        assert stringify(0) == "0"
        assert stringify(1789600) == "1789600"

    def test_none_is_empty(self):
        """Test absent values render empty"""
        assert stringify(None) == ""

    def test_nested_canonical(self):
        """Test values with their own canonicalization"""
        item = Item(name="Item", quantity=2, amount=100, description="Desc")
        assert stringify(item) == "Item|2|100|Desc"

    def test_unsupported_type(self):
        """Test unsupported values are rejected"""
        with pytest.raises(TypeError):
            stringify(1.5)


class TestCanonicalString:
    """Test canonical string joining"""

    def test_join_in_given_order(self):
        """Test segments keep the given order"""
        assert canonical_string(["b", "a", 1, True]) == "b|a|1|true"

    def test_skips_absent_and_empty(self):
        """Test absent and empty values leave no empty segment"""
        assert canonical_string(["a", None, "", "b"]) == "a|b"

    def test_all_empty(self):
        """Test nothing to sign yields an empty string"""
        assert canonical_string([None, ""]) == ""

    def test_false_is_not_skipped(self):
        """Test False and 0 are values, not absences"""
        assert canonical_string([False, 0]) == "false|0"


class TestMessageCanonicalization:
    """Test canonicalization of messages"""

    def test_init_example(self, init_example, init_canonical):
        """Test the documented Init example signing string"""
        message = Init(**init_example)
        assert message.canonical_string() == init_canonical

    def test_declared_order_not_keyword_order(self, init_example, init_canonical):
        """Test keyword order does not influence the signing string"""
        reordered = dict(reversed(list(init_example.items())))
        assert Init(**reordered).canonical_string() == init_canonical

    def test_empty_cart(self, init_example):
        """Test an empty cart contributes no segment"""
        init_example["cart"] = []
        message = Init(**init_example)

        assert message.cart.canonical_string() == ""
        assert "||" not in message.canonical_string()
        assert message.canonical_string() == (
            "012345|5547|20190925131559|payment|card|1789600|CZK|true|"
            "https://vasobchod.cz/gateway-return|POST|md|CZ"
        )

    def test_optional_fields_omitted(self, init_example):
        """Test absent optional fields are omitted entirely"""
        del init_example["merchantData"]
        message = Init(**init_example)
        assert message.canonical_string().endswith("Doprava PPL|CZ")

    def test_empty_customer_id_omitted(self, init_example):
        """Test an empty-string optional value is skipped"""
        init_example["customerId"] = ""
        message = Init(**init_example)
        assert "|md|CZ" in message.canonical_string()
        assert "||" not in message.canonical_string()

    def test_echo(self):
        """Test echo signing string"""
        message = Echo(merchantId="012345", dttm="20190925131559")
        assert message.canonical_string() == "012345|20190925131559"

    def test_close_amount(self):
        """Test optional amount is appended after dttm"""
        fields = {"merchantId": "012345", "payId": "d165e3c4b624fBD", "dttm": "20190925131559"}

        assert Close(**fields).canonical_string() == "012345|d165e3c4b624fBD|20190925131559"
        assert Close(**fields, amount=500).canonical_string() == (
            "012345|d165e3c4b624fBD|20190925131559|500"
        )


class TestCartCanonicalization:
    """Test cart and item canonicalization"""

    def test_item_trimmed(self):
        """Test item strings are trimmed before canonicalization"""
        item = Item(name="  Poštovné ", quantity=1, amount=0, description=" Doprava PPL ")
        assert item.canonical_string() == "Poštovné|1|0|Doprava PPL"

    def test_item_empty_description(self):
        """Test empty description is skipped within the item"""
        item = Item(name="Item", quantity=1, amount=10, description="   ")
        assert item.canonical_string() == "Item|1|10"

    def test_cart_joins_items(self):
        """Test cart joins item strings in order"""
        cart = Cart([
            Item(name="A", quantity=1, amount=1, description="a"),
            Item(name="B", quantity=2, amount=2, description="b"),
        ])
        assert cart.canonical_string() == "A|1|1|a|B|2|2|b"
        assert len(cart) == 2
        assert [item.name for item in cart] == ["A", "B"]

    def test_empty_cart(self):
        """Test empty cart canonicalizes to an empty string"""
        assert Cart([]).canonical_string() == ""
