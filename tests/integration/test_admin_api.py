"""
Integration tests for the admin endpoints: products, variants, customers,
settings and dashboard.
"""

import io
import pytest
from decimal import Decimal

from vitrine.models import Product, Customer, Sale, StoreSettings
from vitrine.services import storage_service, ai_service


class FakeStorage:
    """In-memory stand-in for the S3 storage service."""

    public_prefix = 'http://storage.test/bucket/'

    def __init__(self):
        self.uploaded = []
        self.deleted = []

    build_object_name = staticmethod(storage_service.StorageService.build_object_name)

    def upload_file(self, file, object_name, content_type=None):
        if file.content_type not in ('image/png', 'image/jpeg'):
            raise ValueError(f'Tipo de arquivo não permitido: {file.content_type}')
        self.uploaded.append(object_name)
        return self.public_prefix + object_name

    def object_name_from_url(self, url):
        if url.startswith(self.public_prefix):
            return url[len(self.public_prefix):]
        return None

    def delete_file(self, object_name):
        self.deleted.append(object_name)
        return True


@pytest.fixture
def fake_storage(monkeypatch):
    storage = FakeStorage()
    monkeypatch.setattr(storage_service, 'get_storage_service', lambda: storage)
    return storage


def _upload(name='foto.png', content_type='image/png'):
    return {'image': (io.BytesIO(b'\x89PNG fake'), name, content_type)}


class TestProducts:
    """Product CRUD."""

    def test_create_with_brazilian_price(self, admin_client, category):
        category_id = category.id
        response = admin_client.post('/products', json={
            'name': 'Brinco Argola',
            'price': '1.234,50',
            'stock': '',
            'category_id': category_id,
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['price'] == '1234.50'
        assert data['stock'] is None
        assert data['out_of_stock'] is False
        assert data['category_name'] == 'Joias'

    def test_validation(self, admin_client, session):
        assert admin_client.post('/products', json={'price': '10'}).status_code == 400
        assert admin_client.post('/products', json={'name': 'X'}).status_code == 400
        assert admin_client.post('/products', json={'name': 'X', 'price': '10', 'stock': -1}).status_code == 400
        assert admin_client.post('/products', json={'name': 'X', 'price': '10', 'category_id': 999}).status_code == 400

    def test_list_search(self, admin_client, product, second_product):
        data = admin_client.get('/products?q=anel').get_json()
        assert [p['name'] for p in data['products']] == ['Anel Prata']

    def test_update_and_duplicate(self, admin_client, product):
        product_id = product.id
        response = admin_client.put(f'/products/{product_id}', json={
            'name': 'Anel Prata 925', 'price': '120', 'promotional_price': '99.90', 'stock': 4,
        })
        assert response.get_json()['has_promotion'] is True

        copy = admin_client.post(f'/products/{product_id}/duplicate').get_json()
        assert copy['name'] == 'Anel Prata 925 (Cópia)'
        assert copy['id'] != product_id
        assert copy['promotional_price'] == '99.90'

    def test_delete_keeps_sale_snapshot(self, admin_client, session, product):
        product_id = product.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        sale_id = admin_client.post('/sales/cart/finalize').get_json()['sale']['id']

        assert admin_client.delete(f'/products/{product_id}').status_code == 200

        sale = admin_client.get(f'/sales/{sale_id}').get_json()
        assert sale['items'][0]['product_id'] is None
        assert sale['items'][0]['product_name'] == 'Anel Prata'

    def test_missing_product(self, admin_client, session):
        assert admin_client.get('/products/999').status_code == 404


class TestProductImages:
    """Image upload and removal through object storage."""

    def test_upload_and_remove(self, admin_client, product, fake_storage):
        product_id = product.id
        response = admin_client.post(f'/products/{product_id}/images', data=_upload(),
                                     content_type='multipart/form-data')
        assert response.status_code == 201
        images = response.get_json()['images']
        assert len(images) == 2
        assert images[1].startswith(FakeStorage.public_prefix + 'products/')

        response = admin_client.delete(f'/products/{product_id}/images', json={'url': images[1]})
        assert response.get_json()['images'] == ['http://img.test/anel.jpg']
        assert fake_storage.deleted == [images[1][len(FakeStorage.public_prefix):]]

    def test_rejected_file_type(self, admin_client, product, fake_storage):
        response = admin_client.post(f'/products/{product.id}/images',
                                     data=_upload('doc.pdf', 'application/pdf'),
                                     content_type='multipart/form-data')
        assert response.status_code == 400

    def test_unknown_image_url(self, admin_client, product, fake_storage):
        response = admin_client.delete(f'/products/{product.id}/images', json={'url': 'http://x/y.png'})
        assert response.status_code == 404


class TestImport:
    """Import from invoice photo."""

    def test_apply_creates_and_links(self, admin_client, session, product):
        product_id = product.id
        response = admin_client.post('/products/import-apply', json={
            'profit_margin': 50,
            'products': [
                {'name': 'Pulseira Couro', 'quantity': 3, 'unitPrice': '20.00', 'action': 'create'},
                {'name': 'Anel', 'quantity': 2, 'unitPrice': '10', 'action': 'link', 'linkedProductId': product_id},
            ],
        })

        assert response.status_code == 200
        assert response.get_json()['created'] == 1
        assert response.get_json()['updated'] == 1
        created = session.query(Product).filter(Product.name == 'Pulseira Couro').one()
        assert created.price == Decimal('30.00')
        assert created.cost_price == Decimal('20.00')
        assert created.stock == 3
        assert session.get(Product, product_id).stock == 12

    def test_apply_is_all_or_nothing(self, admin_client, session):
        response = admin_client.post('/products/import-apply', json={
            'products': [
                {'name': 'Ok', 'quantity': 1, 'unitPrice': '5', 'action': 'create'},
                {'name': '', 'quantity': 1, 'unitPrice': '5', 'action': 'create'},
            ],
        })
        assert response.status_code == 400
        assert session.query(Product).count() == 0

    def test_photo_rows_get_similar_products(self, admin_client, product, monkeypatch):
        product_id = product.id

        def fake_extract(self, image_data_url):
            return [
                {'name': 'Anel Prata Cravejado', 'quantity': 2, 'unitPrice': 35},
                {'name': 'Tornozeleira', 'quantity': 1, 'unitPrice': 12},
            ]

        monkeypatch.setattr(ai_service.AIGatewayClient, 'extract_products', fake_extract)
        response = admin_client.post('/products/import-photo', data=_upload(),
                                     content_type='multipart/form-data')

        # fake bytes are not a decodable image
        assert response.status_code == 400

        from PIL import Image
        buffer = io.BytesIO()
        Image.new('RGB', (10, 10)).save(buffer, format='PNG')
        buffer.seek(0)
        response = admin_client.post('/products/import-photo',
                                     data={'image': (buffer, 'nota.png', 'image/png')},
                                     content_type='multipart/form-data')

        assert response.status_code == 200
        rows = response.get_json()['products']
        assert rows[0]['action'] == 'link'
        assert rows[0]['linkedProductId'] == product_id
        assert rows[0]['similarProducts'][0]['similarity'] == 67
        assert rows[1]['action'] == 'create'
        assert rows[1]['similarProducts'] == []

    def test_similar_products_take_wildcards_literally(self, session):
        from vitrine.services.product_service import find_similar_products

        session.add_all([
            Product(name='Perfume 100ml', price=Decimal('80.00')),
            Product(name='Kit 10% off', price=Decimal('20.00')),
            Product(name='Brinco a_b', price=Decimal('5.00')),
            Product(name='Brinco axb', price=Decimal('5.00')),
        ])
        session.commit()

        assert [m['name'] for m in find_similar_products(session, '10%')] == ['Kit 10% off']
        assert [m['name'] for m in find_similar_products(session, 'a_b')] == ['Brinco a_b']


class TestVariants:
    """Attributes, options and the variant editor."""

    def test_build_variants(self, admin_client, product):
        product_id = product.id
        size = admin_client.post('/attributes', json={'name': 'Aro'}).get_json()
        opt_16 = admin_client.post(f"/attributes/{size['id']}/options", json={'label': '16'}).get_json()
        opt_18 = admin_client.post(f"/attributes/{size['id']}/options", json={'label': '18'}).get_json()

        response = admin_client.post(f'/products/{product_id}/variants', json={
            'option_ids': [opt_16['id']], 'price_adjustment': '0', 'stock': 2,
        })
        assert response.status_code == 201
        admin_client.post(f'/products/{product_id}/variants', json={
            'option_ids': [opt_18['id']], 'price_adjustment': '10,00', 'stock': 0,
        })

        variants = admin_client.get(f'/products/{product_id}/variants').get_json()['variants']
        assert [v['price_adjustment'] for v in variants] == ['0.00', '10.00']

        duplicate = admin_client.post(f'/products/{product_id}/variants', json={'option_ids': [opt_16['id']]})
        assert duplicate.status_code == 400

    def test_option_ids_must_be_a_list(self, admin_client, product):
        response = admin_client.post(f'/products/{product.id}/variants', json={'option_ids': 'abc'})
        assert response.status_code == 400

    def test_update_and_delete_variant(self, admin_client, sized_product):
        product_id = sized_product['product_id']
        variant = admin_client.get(f'/products/{product_id}/variants').get_json()['variants'][0]

        updated = admin_client.put(f"/variants/{variant['id']}", json={'stock': 7, 'sku': 'CAM-P-R'}).get_json()
        assert updated['stock'] == 7
        assert updated['sku'] == 'CAM-P-R'

        assert admin_client.delete(f"/variants/{variant['id']}").status_code == 200
        assert len(admin_client.get(f'/products/{product_id}/variants').get_json()['variants']) == 3


class TestCustomers:
    """Customer CRUD and autocomplete."""

    def test_crud(self, admin_client, session):
        response = admin_client.post('/customers', json={'name': 'Ana Lima', 'phone': '(21) 91234-5678'})
        assert response.status_code == 201
        customer_id = response.get_json()['id']

        updated = admin_client.put(f'/customers/{customer_id}', json={'name': 'Ana Lima Souza'}).get_json()
        assert updated['name'] == 'Ana Lima Souza'

        assert admin_client.delete(f'/customers/{customer_id}').status_code == 200
        assert admin_client.get(f'/customers/{customer_id}').status_code == 404

    def test_name_is_required(self, admin_client, session):
        assert admin_client.post('/customers', json={'phone': '1'}).status_code == 400

    def test_search(self, admin_client, customer):
        results = admin_client.get('/customers/search?q=9999').get_json()['results']
        assert [r['name'] for r in results] == ['Maria Silva']
        assert admin_client.get('/customers/search?q=').get_json()['results'] == []

    def test_deleting_customer_keeps_sales(self, admin_client, session, product, customer):
        customer_id, product_id = customer.id, product.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        admin_client.post('/sales/cart/customer', json={'customer_id': customer_id})
        admin_client.post('/sales/cart/finalize')

        admin_client.delete(f'/customers/{customer_id}')

        assert session.query(Customer).count() == 0
        sale = session.query(Sale).one()
        assert sale.customer_id is None


class TestSettings:
    """Store branding and banners."""

    def test_defaults_created_on_first_read(self, admin_client, session):
        data = admin_client.get('/settings').get_json()
        assert data['store_name'] == 'Minha Loja'
        assert session.query(StoreSettings).count() == 1

    def test_update(self, admin_client, session):
        data = admin_client.put('/settings', json={
            'store_name': 'Bijoux da Ana', 'primary_color': '#aa00cc', 'whatsapp_number': '11 99999-0000',
        }).get_json()
        assert data['store_name'] == 'Bijoux da Ana'
        assert data['primary_color'] == '#aa00cc'

        catalog = admin_client.get('/catalogo').get_json()
        assert catalog['store']['store_name'] == 'Bijoux da Ana'

    def test_invalid_color_and_missing_name(self, admin_client, session):
        assert admin_client.put('/settings', json={'store_name': 'X', 'primary_color': 'red'}).status_code == 400
        assert admin_client.put('/settings', json={'store_name': ' '}).status_code == 400

    def test_logo_upload(self, admin_client, session, fake_storage):
        response = admin_client.post('/settings/logo', data=_upload('logo.png'), content_type='multipart/form-data')
        assert response.status_code == 200
        assert response.get_json()['logo_url'].startswith(FakeStorage.public_prefix + 'logos/')

    def test_banners(self, admin_client, session, fake_storage):
        url = admin_client.post('/settings/banners/upload', data=_upload('b.png'),
                                content_type='multipart/form-data').get_json()['image_url']
        first = admin_client.post('/settings/banners', json={'image_url': url, 'title': 'Promo'}).get_json()
        second = admin_client.post('/settings/banners', json={'image_url': url}).get_json()
        assert (first['sort_order'], second['sort_order']) == (0, 1)

        admin_client.put(f"/settings/banners/{second['id']}", json={'is_active': False})
        catalog = admin_client.get('/catalogo').get_json()
        assert [b['id'] for b in catalog['banners']] == [first['id']]

        assert admin_client.delete(f"/settings/banners/{first['id']}").status_code == 200
        assert len(admin_client.get('/settings/banners').get_json()['banners']) == 1

    def test_banner_needs_image(self, admin_client, session):
        assert admin_client.post('/settings/banners', json={'title': 'x'}).status_code == 400


class TestDashboard:
    """Dashboard metrics and insights."""

    def test_stats_after_sales(self, admin_client, product, second_product, customer):
        product_id, second_id, customer_id = product.id, second_product.id, customer.id
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        admin_client.post('/sales/cart/add', json={'product_id': product_id})
        admin_client.post('/sales/cart/customer', json={'customer_id': customer_id})
        admin_client.post('/sales/cart/finalize')
        admin_client.post('/sales/cart/reset')
        admin_client.post('/sales/cart/add', json={'product_id': second_id})
        admin_client.post('/sales/cart/finalize')

        data = admin_client.get('/dashboard').get_json()

        assert data['total_revenue'] == '240.00'
        assert data['total_sales'] == 2
        assert data['total_products'] == 2
        assert data['total_customers'] == 1
        assert data['best_selling_products'][0] == {'name': 'Anel Prata', 'quantity': 2}
        assert data['top_customers'] == [{'id': customer_id, 'name': 'Maria Silva', 'total': '200.00'}]
        assert len(data['revenue_by_day']) == 1
        assert data['revenue_by_day'][0]['revenue'] == '240.00'

    def test_empty_range(self, admin_client, session):
        data = admin_client.get('/dashboard?start=2020-01-01&end=2020-01-31').get_json()
        assert data['start_date'] == '2020-01-01'
        assert data['total_revenue'] == '0.00'
        assert data['revenue_by_day'] == []

    def test_insights(self, admin_client, product, monkeypatch):
        seen = {}

        def fake_insights(self, stats, products):
            seen['products'] = products
            return [{'title': 'Ok', 'description': 'Tudo certo', 'type': 'info'}]

        monkeypatch.setattr(ai_service.AIGatewayClient, 'generate_insights', fake_insights)

        data = admin_client.get('/dashboard/insights').get_json()

        assert data['insights'][0]['title'] == 'Ok'
        assert seen['products'] == [{'name': 'Anel Prata', 'stock': 10, 'price': '100.00'}]
