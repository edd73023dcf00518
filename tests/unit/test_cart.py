"""
Unit tests for the point-of-sale cart.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from vitrine.exceptions import BusinessLogicError
from vitrine.services.cart import Cart, CartState, compute_coupon_discount, unit_price_for


def _product(product_id, price, promotional_price=None, name=None):
    return SimpleNamespace(
        id=product_id,
        name=name or f'Produto {product_id}',
        price=Decimal(price),
        promotional_price=Decimal(promotional_price) if promotional_price is not None else None,
        cover_image=None,
    )


def _coupon(discount_type, value, code='CUPOM'):
    return SimpleNamespace(
        id=1, code=code, discount_type=discount_type,
        discount_value=Decimal(value), min_purchase=Decimal('0.00'),
    )


class TestLines:
    """Tests for adding, updating and removing lines."""

    def test_new_cart_is_empty(self):
        assert Cart().state == CartState.EMPTY

    def test_add_appends_then_increments(self):
        cart = Cart()
        product = _product(1, '10.00')
        cart.add(product)
        cart.add(product)
        assert len(cart.items) == 1
        assert cart.items[0]['quantity'] == 2
        assert cart.state == CartState.BUILDING

    def test_update_quantity_to_zero_removes_line(self):
        cart = Cart()
        cart.add(_product(1, '10.00'))
        cart.update_quantity(1, -1)
        assert cart.items == []
        assert cart.state == CartState.EMPTY

    def test_update_quantity_below_zero_removes_line(self):
        cart = Cart()
        cart.add(_product(1, '10.00'))
        cart.update_quantity(1, -5)
        assert cart.items == []

    def test_remove(self):
        cart = Cart()
        cart.add(_product(1, '10.00'))
        cart.add(_product(2, '20.00'))
        cart.remove(1)
        assert [item['product_id'] for item in cart.items] == [2]

    def test_promotional_price_wins(self):
        assert unit_price_for(_product(1, '50.00', '40.00')) == Decimal('40.00')
        assert unit_price_for({'price': '50.00', 'promotional_price': None}) == Decimal('50.00')


class TestTotals:
    """Tests for subtotal, coupon and manual discount math."""

    def test_subtotal_is_exact(self):
        cart = Cart()
        cart.add(_product(1, '0.10'))
        cart.add(_product(2, '0.20'))
        cart.update_quantity(2, 2)
        assert cart.subtotal == Decimal('0.70')

    def test_percentage_coupon_on_one_hundred(self):
        cart = Cart()
        cart.add(_product(1, '100.00'))
        cart.set_coupon(_coupon('percentage', '10', 'SAVE10'))
        assert cart.coupon_discount == Decimal('10.00')
        assert cart.total == Decimal('90.00')

    def test_fixed_coupon_larger_than_subtotal_floors_at_zero(self):
        cart = Cart()
        cart.add(_product(1, '30.00'))
        cart.set_coupon(_coupon('fixed', '50'))
        assert cart.total == Decimal('0.00')

    def test_percentage_is_rounded_to_cents(self):
        assert compute_coupon_discount('percentage', '15', '33.33') == Decimal('5.00')

    def test_manual_discount(self):
        cart = Cart()
        cart.add(_product(1, '100.00'))
        cart.set_manual_discount('15.50')
        assert cart.total == Decimal('84.50')

    def test_negative_manual_discount_rejected(self):
        with pytest.raises(BusinessLogicError):
            Cart().set_manual_discount('-1')

    def test_second_coupon_rejected_until_removed(self):
        cart = Cart()
        cart.add(_product(1, '100.00'))
        cart.set_coupon(_coupon('percentage', '10'))
        with pytest.raises(BusinessLogicError):
            cart.set_coupon(_coupon('fixed', '5', 'OUTRO'))
        cart.remove_coupon()
        cart.set_coupon(_coupon('fixed', '5', 'OUTRO'))
        assert cart.coupon['code'] == 'OUTRO'


class TestLifecycle:
    """Tests for the cart state machine and session round trip."""

    def test_finalize_empty_cart_rejected(self):
        with pytest.raises(BusinessLogicError):
            Cart().begin_finalize()

    def test_completed_cart_is_frozen(self):
        cart = Cart()
        cart.add(_product(1, '10.00'))
        cart.begin_finalize()
        assert cart.state == CartState.FINALIZING
        cart.mark_completed()
        assert cart.state == CartState.COMPLETED
        with pytest.raises(BusinessLogicError):
            cart.add(_product(2, '5.00'))

    def test_abort_returns_to_building(self):
        cart = Cart()
        cart.add(_product(1, '10.00'))
        cart.begin_finalize()
        cart.abort_finalize()
        assert cart.state == CartState.BUILDING

    def test_idempotency_key_per_cart(self):
        cart = Cart()
        assert cart.idempotency_key is None
        cart.add(_product(1, '10.00'))
        key = cart.idempotency_key
        assert key
        cart.add(_product(2, '5.00'))
        assert cart.idempotency_key == key

        cart.clear()
        assert cart.idempotency_key is None
        cart.add(_product(1, '10.00'))
        assert cart.idempotency_key != key

    def test_session_round_trip_keeps_decimals(self):
        cart = Cart()
        cart.add(_product(1, '19.90'))
        cart.customer_id = 3
        cart.set_coupon(_coupon('percentage', '10'))
        cart.set_manual_discount('1.00')

        data = cart.to_dict()
        assert data['items'][0]['unit_price'] == '19.90'

        restored = Cart.from_dict(data)
        assert restored.subtotal == Decimal('19.90')
        assert restored.total == cart.total
        assert restored.customer_id == 3
        assert restored.idempotency_key == cart.idempotency_key
