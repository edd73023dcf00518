"""
Integration tests for the point-of-sale cart endpoints.
"""

import copy
from datetime import datetime, timedelta
from decimal import Decimal

from vitrine.models import Product, Sale, Coupon, Customer


class TestCartFlow:
    """Cart edits through the session cookie."""

    def test_empty_cart(self, admin_client):
        data = admin_client.get('/sales/cart').get_json()
        assert data['state'] == 'empty'
        assert data['total'] == '0.00'

    def test_add_uses_promotional_price(self, admin_client, second_product):
        product_id = second_product.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        data = admin_client.post('/sales/cart/add', json={'product_id': product_id}).get_json()

        assert data['state'] == 'building'
        assert data['items'][0]['quantity'] == 2
        assert data['items'][0]['unit_price'] == '40.00'
        assert data['subtotal'] == '80.00'

    def test_unknown_and_inactive_products_are_rejected(self, admin_client, session, product):
        product_id = product.id
        product.is_active = False
        session.commit()

        assert admin_client.post('/sales/cart/add', json={'product_id': 999}).status_code == 404
        assert admin_client.post('/sales/cart/add', json={'product_id': product_id}).status_code == 400

    def test_quantity_to_zero_removes_line(self, admin_client, product):
        product_id = product.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        data = admin_client.post('/sales/cart/quantity', json={'product_id': product_id, 'delta': -1}).get_json()

        assert data['items'] == []
        assert data['state'] == 'empty'

    def test_manual_discount(self, admin_client, product):
        admin_client.post('/sales/cart/add', json={'product_id': product.id})
        data = admin_client.post('/sales/cart/discount', json={'amount': '12,50'}).get_json()

        assert data['manual_discount'] == '12.50'
        assert data['total'] == '87.50'

    def test_negative_discount_is_rejected(self, admin_client, product):
        admin_client.post('/sales/cart/add', json={'product_id': product.id})
        assert admin_client.post('/sales/cart/discount', json={'amount': '-5'}).status_code == 400


class TestCartCoupons:
    """Coupon application on the cart."""

    def test_typed_code(self, admin_client, product, coupon):
        admin_client.post('/sales/cart/add', json={'product_id': product.id})
        response = admin_client.post('/sales/cart/coupon', json={'code': 'save10'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['coupon']['code'] == 'SAVE10'
        assert data['coupon_discount'] == '10.00'
        assert data['total'] == '90.00'

    def test_failed_gate_reports_reason(self, admin_client, product):
        admin_client.post('/sales/cart/add', json={'product_id': product.id})
        response = admin_client.post('/sales/cart/coupon', json={'code': 'NOPE'})

        assert response.status_code == 400
        assert response.get_json()['reason'] == 'not_found'

    def test_second_coupon_is_rejected(self, admin_client, session, product, coupon):
        session.add(Coupon(code='EXTRA', discount_type='fixed', discount_value=Decimal('5.00'),
                           min_purchase=Decimal('0.00'), current_uses=0, is_active=True))
        session.commit()
        admin_client.post('/sales/cart/add', json={'product_id': product.id})
        admin_client.post('/sales/cart/coupon', json={'code': 'SAVE10'})

        response = admin_client.post('/sales/cart/coupon', json={'code': 'EXTRA'})
        assert response.status_code == 400

        admin_client.delete('/sales/cart/coupon')
        data = admin_client.post('/sales/cart/coupon', json={'code': 'EXTRA'}).get_json()
        assert data['total'] == '95.00'

    def test_customer_coupon_dropped_on_customer_change(self, admin_client, session, product, customer, coupon):
        customer_id, coupon_id, product_id = customer.id, coupon.id, product.id
        other = Customer(name='João Souza')
        session.add(other)
        session.commit()
        other_id = other.id
        admin_client.post(f'/customers/{customer_id}/coupons', json={'coupon_id': coupon_id})

        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        data = admin_client.post('/sales/cart/customer', json={'customer_id': customer_id}).get_json()
        assert [c['id'] for c in data['customer_coupons']] == [coupon_id]

        data = admin_client.post('/sales/cart/coupon', json={'coupon_id': coupon_id}).get_json()
        assert data['coupon']['via_customer'] is True

        data = admin_client.post('/sales/cart/customer', json={'customer_id': other_id}).get_json()
        assert data['coupon'] is None
        assert data['customer_coupons'] == []

    def test_customer_coupon_needs_customer(self, admin_client, product, coupon):
        product_id, coupon_id = product.id, coupon.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        response = admin_client.post('/sales/cart/coupon', json={'coupon_id': coupon_id})
        assert response.status_code == 400

    def _linked_coupon(self, admin_client, session, customer, **overrides):
        """Inactive, expired VIP coupon granted to the customer."""
        values = dict(
            code='VIP',
            discount_type='fixed',
            discount_value=Decimal('20.00'),
            min_purchase=Decimal('0.00'),
            valid_from=datetime.now() - timedelta(days=30),
            valid_until=datetime.now() - timedelta(days=1),
            is_active=False,
        )
        values.update(overrides)
        coupon = Coupon(**values)
        session.add(coupon)
        session.commit()
        coupon_id, customer_id = coupon.id, customer.id
        admin_client.post(f'/customers/{customer_id}/coupons', json={'coupon_id': coupon_id})
        return coupon_id, customer_id

    def test_linked_coupon_ignores_status(self, admin_client, session, product, customer):
        product_id = product.id
        coupon_id, customer_id = self._linked_coupon(admin_client, session, customer)
        admin_client.post('/sales/cart/add', json={'product_id': product_id})

        response = admin_client.post('/sales/cart/coupon', json={'code': 'VIP'})
        assert response.status_code == 400

        admin_client.post('/sales/cart/customer', json={'customer_id': customer_id})
        data = admin_client.post('/sales/cart/coupon', json={'coupon_id': coupon_id}).get_json()
        assert data['coupon']['code'] == 'VIP'
        assert data['total'] == '80.00'

        response = admin_client.post('/sales/cart/finalize')
        assert response.status_code == 201
        assert response.get_json()['sale']['total'] == '80.00'

    def test_linked_coupon_min_purchase(self, admin_client, session, product, customer):
        product_id = product.id
        coupon_id, customer_id = self._linked_coupon(
            admin_client, session, customer, min_purchase=Decimal('150.00')
        )
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        admin_client.post('/sales/cart/customer', json={'customer_id': customer_id})

        response = admin_client.post('/sales/cart/coupon', json={'coupon_id': coupon_id})
        assert response.status_code == 400
        assert response.get_json()['reason'] == 'min_purchase'

        # applied at 200.00, then the cart drops under the minimum before finalizing
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        assert admin_client.post('/sales/cart/coupon', json={'coupon_id': coupon_id}).status_code == 200
        admin_client.post('/sales/cart/quantity', json={'product_id': product_id, 'delta': -1})

        response = admin_client.post('/sales/cart/finalize')
        assert response.status_code == 400
        assert response.get_json()['reason'] == 'min_purchase'
        assert session.query(Sale).count() == 0
        assert admin_client.get('/sales/cart').get_json()['state'] == 'building'


class TestFinalizeAndHistory:
    """Finalization, history and deletion over HTTP."""

    def test_finalize_then_reset(self, admin_client, session, product, coupon):
        product_id, coupon_id = product.id, coupon.id
        for _ in range(3):
            admin_client.post('/sales/cart/add', json={'product_id': product_id})
        admin_client.post('/sales/cart/coupon', json={'code': 'SAVE10'})

        response = admin_client.post('/sales/cart/finalize')

        assert response.status_code == 201
        data = response.get_json()
        assert data['state'] == 'completed'
        assert data['sale']['total'] == '270.00'
        assert data['sale']['items'][0]['product_name'] == 'Anel Prata'

        assert session.get(Product, product_id).stock == 7
        assert session.get(Coupon, coupon_id).current_uses == 1

        # completed cart is frozen until reset
        assert admin_client.post('/sales/cart/add', json={'product_id': product_id}).status_code == 400
        assert admin_client.post('/sales/cart/reset').get_json()['state'] == 'empty'

    def test_replayed_finalize_is_refused(self, admin_client, session, product):
        product_id = product.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        with admin_client.session_transaction() as sess:
            building_cart = copy.deepcopy(sess['cart'])

        assert admin_client.post('/sales/cart/finalize').status_code == 201

        # same cart sent again, as a double submit would
        with admin_client.session_transaction() as sess:
            sess['cart'] = building_cart
        response = admin_client.post('/sales/cart/finalize')

        assert response.status_code == 400
        assert 'já foi registrada' in response.get_json()['message']
        assert session.query(Sale).count() == 1
        assert session.get(Product, product_id).stock == 9

    def test_finalize_empty_cart(self, admin_client):
        response = admin_client.post('/sales/cart/finalize')
        assert response.status_code == 400

    def test_history_detail_and_delete(self, admin_client, session, product):
        product_id = product.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        sale_id = admin_client.post('/sales/cart/finalize').get_json()['sale']['id']

        sales = admin_client.get('/sales').get_json()['sales']
        assert [s['id'] for s in sales] == [sale_id]
        assert admin_client.get(f'/sales/{sale_id}').get_json()['total'] == '100.00'

        response = admin_client.delete(f'/sales/{sale_id}')
        assert response.status_code == 200
        assert response.get_json()['restored_products'][0]['new_stock'] == 10
        assert session.query(Sale).count() == 0
        assert admin_client.get(f'/sales/{sale_id}').status_code == 404
