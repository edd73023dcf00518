import pytest
from decimal import Decimal
from datetime import datetime, timedelta
import uuid

from config import TestConfig
from vitrine import create_app
from vitrine.database import get_session, create_all, drop_all
from vitrine.models import (
    AppUser, UserRole, UserRoleGrant, Category, Product, Customer, Coupon,
    ProductAttribute, AttributeOption, ProductVariant, StoreSettings
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app(TestConfig)
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """
    Database session on fresh tables.

    Each client request removes the scoped session on teardown, so
    objects created here detach after a request; read ids before calling
    the client and re-query afterwards.
    """
    ctx = app.app_context()
    ctx.push()
    create_all()
    db_session = get_session()
    yield db_session
    db_session.remove()
    drop_all()
    ctx.pop()


@pytest.fixture(scope='function')
def admin_user(session):
    """User holding the admin role."""
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(email=f'admin-{suffix}@test.com', full_name='Admin', active=True)
    user.set_password('password123')
    user.roles.append(UserRoleGrant(role=UserRole.ADMIN.value))
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def plain_user(session):
    """Logged-in capable user without the admin role."""
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(email=f'user-{suffix}@test.com', full_name='User', active=True)
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_client(client, admin_user):
    """Client with an admin session cookie."""
    user_id = admin_user.id
    with client.session_transaction() as sess:
        sess['user_id'] = user_id
    return client


@pytest.fixture(scope='function')
def category(session):
    category = Category(name='Joias', sort_order=0)
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def product(session, category):
    """Active product with tracked stock."""
    product = Product(
        name='Anel Prata',
        description='Anel de prata 925',
        price=Decimal('100.00'),
        stock=10,
        category_id=category.id,
        images=['http://img.test/anel.jpg'],
        is_active=True,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(session):
    product = Product(
        name='Colar Dourado',
        price=Decimal('50.00'),
        promotional_price=Decimal('40.00'),
        stock=5,
        images=[],
        is_active=True,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def customer(session):
    customer = Customer(name='Maria Silva', phone='(11) 99999-0000', address='Rua A, 10')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def coupon(session):
    """SAVE10: 10% off, no minimum."""
    coupon = Coupon(
        code='SAVE10',
        discount_type='percentage',
        discount_value=Decimal('10.00'),
        min_purchase=Decimal('0.00'),
        current_uses=0,
        valid_from=datetime.now() - timedelta(days=1),
        is_active=True,
    )
    session.add(coupon)
    session.commit()
    return coupon


@pytest.fixture(scope='function')
def store_settings(session):
    settings = StoreSettings(store_name='Loja Teste', whatsapp_number='+55 (11) 98888-7777')
    session.add(settings)
    session.commit()
    return settings


@pytest.fixture(scope='function')
def sized_product(session):
    """
    Product with variants {Tamanho: P, M} x {Cor: Vermelho, Azul};
    only (M, Vermelho) has stock.
    """
    size = ProductAttribute(name='Tamanho', sort_order=0)
    color = ProductAttribute(name='Cor', sort_order=1)
    size.options = [AttributeOption(label='P', sort_order=0), AttributeOption(label='M', sort_order=1)]
    color.options = [AttributeOption(label='Vermelho', sort_order=0), AttributeOption(label='Azul', sort_order=1)]
    session.add_all([size, color])
    session.flush()

    product = Product(name='Camiseta', price=Decimal('50.00'), stock=None, images=['http://img.test/c.jpg'], is_active=True)
    session.add(product)
    session.flush()

    small, medium = size.options
    red, blue = color.options
    for size_option in (small, medium):
        for color_option in (red, blue):
            in_stock = size_option is medium and color_option is red
            variant = ProductVariant(
                product_id=product.id,
                price_adjustment=Decimal('5.00') if size_option is medium else Decimal('0.00'),
                stock=3 if in_stock else 0,
                is_active=True,
            )
            variant.options = [size_option, color_option]
            session.add(variant)
    session.commit()
    return {
        'product_id': product.id,
        'size_id': size.id,
        'color_id': color.id,
        'P': small.id,
        'M': medium.id,
        'red': red.id,
        'blue': blue.id,
    }
