"""Unit tests for database models."""
import pytest
from decimal import Decimal
import uuid

from sqlalchemy.exc import IntegrityError

from vitrine.models import (
    AppUser, UserRole, UserRoleGrant, Product, Sale, SaleItem, Coupon, CustomerCoupon
)


class TestAppUserModel:
    """Tests for AppUser model."""

    def test_create_user(self, session):
        """Test creating a user."""
        suffix = str(uuid.uuid4())[:8]
        email = f'test_{suffix}@example.com'
        user = AppUser(
            email=email,
            full_name='Test User',
            active=True
        )
        user.set_password('securepassword')
        session.add(user)
        session.commit()

        assert user.id is not None
        assert user.email == email
        assert user.password_hash is not None
        assert user.password_hash != 'securepassword'

    def test_password_hashing(self, session):
        """Test password hashing and verification."""
        user = AppUser(email='user@test.com', active=True)
        user.set_password('mypassword')

        assert user.check_password('mypassword') is True
        assert user.check_password('wrongpassword') is False

    def test_user_without_password_never_matches(self, session):
        user = AppUser(email='nopass@test.com', active=True)
        assert user.check_password('') is False

    def test_user_email_unique(self, session, plain_user):
        """Test that user email must be unique."""
        duplicate_user = AppUser(
            email=plain_user.email,
            full_name='Duplicate User'
        )
        session.add(duplicate_user)

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_has_role(self, session, admin_user, plain_user):
        assert admin_user.has_role(UserRole.ADMIN) is True
        assert admin_user.has_role('admin') is True
        assert plain_user.has_role(UserRole.ADMIN) is False

    def test_role_granted_once(self, session, admin_user):
        session.add(UserRoleGrant(user_id=admin_user.id, role=UserRole.ADMIN.value))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()


class TestProductModel:
    """Tests for Product model."""

    def test_unit_price_uses_promotion(self, session, product, second_product):
        assert product.unit_price == Decimal('100.00')
        assert second_product.unit_price == Decimal('40.00')
        assert second_product.has_promotion is True

    def test_promotion_above_price_is_not_shown(self, session):
        product = Product(name='Brinco', price=Decimal('30.00'), promotional_price=Decimal('35.00'))

        # Charged anyway, but not advertised as a promotion
        assert product.unit_price == Decimal('35.00')
        assert product.has_promotion is False

    def test_out_of_stock(self, session):
        assert Product(name='A', price=Decimal('1'), stock=0).is_out_of_stock is True
        assert Product(name='B', price=Decimal('1'), stock=2).is_out_of_stock is False
        assert Product(name='C', price=Decimal('1'), stock=None).is_out_of_stock is False

    def test_cover_image(self, session, product, second_product):
        assert product.cover_image == 'http://img.test/anel.jpg'
        assert second_product.cover_image is None


class TestSaleItemStock:
    """Inserting a sale item decrements tracked stock."""

    def _sell(self, session, product_id, name, quantity):
        sale = Sale(subtotal=Decimal('0'), total=Decimal('0'))
        sale.items.append(SaleItem(
            product_id=product_id,
            product_name=name,
            quantity=quantity,
            unit_price=Decimal('1.00'),
            total_price=Decimal(quantity),
        ))
        session.add(sale)
        session.commit()
        return sale

    def test_stock_decremented(self, session, product):
        product_id = product.id
        self._sell(session, product_id, 'Anel Prata', 4)

        session.expire_all()
        assert session.get(Product, product_id).stock == 6

    def test_stock_never_negative(self, session, second_product):
        product_id = second_product.id
        self._sell(session, product_id, 'Colar Dourado', 9)

        session.expire_all()
        assert session.get(Product, product_id).stock == 0

    def test_untracked_stock_untouched(self, session):
        product = Product(name='Sob encomenda', price=Decimal('10.00'), stock=None)
        session.add(product)
        session.commit()
        product_id = product.id
        self._sell(session, product_id, 'Sob encomenda', 3)

        session.expire_all()
        assert session.get(Product, product_id).stock is None

    def test_total_discount(self):
        sale = Sale(coupon_discount=Decimal('10.00'), manual_discount=Decimal('2.50'))
        assert sale.total_discount == Decimal('12.50')


class TestCustomerCouponModel:

    def test_link_unique(self, session, customer, coupon):
        session.add(CustomerCoupon(customer_id=customer.id, coupon_id=coupon.id))
        session.commit()
        session.add(CustomerCoupon(customer_id=customer.id, coupon_id=coupon.id))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_coupon_code_unique(self, session, coupon):
        session.add(Coupon(
            code=coupon.code,
            discount_type='fixed',
            discount_value=Decimal('5.00'),
        ))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
