"""
Public storefront: listing, product detail, variant selection and try-on.

Layout data (store settings, banners, categories) and the active product
list are cached in Redis; filtering and sorting run per request.
"""
import logging
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from flask import current_app

from vitrine.models import Product, Category
from vitrine.exceptions import NotFoundError, BusinessLogicError
from vitrine.services.cache_service import get_cache
from vitrine.services.category_tree import CategoryIndex
from vitrine.services.settings_service import get_settings, settings_to_dict, list_banners, banner_to_dict
from vitrine.services.variant_resolver import VariantResolver
from vitrine.services.variant_service import load_variants, load_variants_for_products
from vitrine.utils.formatters import money_br, digits_only

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = 'catalog'
SORT_OPTIONS = ('name-asc', 'name-desc', 'price-asc', 'price-desc', 'newest')
DEFAULT_SORT = 'newest'


def price_display(price, promotional_price=None) -> dict:
    """Strike-through pricing only when the promotion is actually lower."""
    has_promotion = promotional_price is not None and Decimal(str(promotional_price)) < Decimal(str(price))
    current = promotional_price if has_promotion else price
    return {
        'price': price,
        'promotional_price': promotional_price,
        'has_promotion': has_promotion,
        'current_price': current,
        'formatted_current': money_br(current),
        'formatted_original': money_br(price) if has_promotion else None,
    }


def whatsapp_link(number: Optional[str], store_name: Optional[str] = None) -> Optional[str]:
    """wa.me link with a greeting that names the store; None without a number."""
    clean_number = digits_only(number)
    if not clean_number:
        return None
    greeting = f"Olá{f', {store_name}' if store_name else ''}! 👋 Gostaria de mais informações sobre os produtos."
    return f"https://wa.me/{clean_number}?text={quote(greeting, safe='')}"


def _sort_price(product: dict) -> Decimal:
    # promotional price whenever set, like the register
    promotional = product.get('promotional_price')
    return Decimal(str(promotional if promotional else product.get('price') or 0))


def sort_products(products: list, sort: str) -> list:
    if sort == 'name-asc':
        return sorted(products, key=lambda p: (p['name'] or '').lower())
    if sort == 'name-desc':
        return sorted(products, key=lambda p: (p['name'] or '').lower(), reverse=True)
    if sort == 'price-asc':
        return sorted(products, key=_sort_price)
    if sort == 'price-desc':
        return sorted(products, key=_sort_price, reverse=True)
    return sorted(products, key=lambda p: (p.get('created_at') or '', p['id']), reverse=True)


def _product_card(product: Product, variants: list) -> dict:
    resolver = VariantResolver(product.price, variants, base_stock=product.stock)
    price_range = resolver.price_range
    return {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'price': product.price,
        'promotional_price': product.promotional_price,
        'stock': product.stock,
        'category_id': product.category_id,
        'images': list(product.images or []),
        'created_at': product.created_at.isoformat() if product.created_at else None,
        'variants': variants,
        'price_range': list(price_range) if price_range else None,
    }


def _load_layout(session) -> dict:
    default_name = current_app.config.get('CATALOG_DEFAULT_NAME', 'Catálogo')
    categories = session.query(Category).order_by(Category.sort_order, Category.name).all()
    settings = settings_to_dict(get_settings(session), default_name)
    return {
        'store': dict(settings, whatsapp_link=whatsapp_link(settings['whatsapp_number'], settings['store_name'])),
        'banners': [banner_to_dict(b) for b in list_banners(session, active_only=True)],
        'categories': [
            {'id': c.id, 'name': c.name, 'parent_id': c.parent_id, 'sort_order': c.sort_order}
            for c in categories
        ],
    }


def _load_active_products(session) -> list:
    products = session.query(Product).filter(Product.is_active == True).all()
    variants_by_product = load_variants_for_products(session, [p.id for p in products])
    return [_product_card(p, variants_by_product.get(p.id, [])) for p in products]


def get_layout(session) -> dict:
    return get_cache().memoize(
        CACHE_NAMESPACE, 'layout', lambda: _load_layout(session),
        ttl=current_app.config.get('CACHE_CATEGORIES_TTL')
    )


def get_catalog(session, search: Optional[str] = None, category_id: Optional[int] = None,
                sort: Optional[str] = None) -> dict:
    """
    Storefront listing.
    
    Search matches name or description (case-insensitive); the category
    filter includes every subcategory of the chosen one.
    """
    layout = get_layout(session)
    products = get_cache().memoize(
        CACHE_NAMESPACE, 'products', lambda: _load_active_products(session),
        ttl=current_app.config.get('CACHE_CATALOG_TTL')
    )
    
    query = (search or '').strip().lower()
    if query:
        products = [
            p for p in products
            if query in (p['name'] or '').lower() or query in (p.get('description') or '').lower()
        ]
    
    if category_id:
        allowed = CategoryIndex(layout['categories']).get_descendant_ids(category_id)
        products = [p for p in products if p.get('category_id') in allowed]
    
    sort = sort if sort in SORT_OPTIONS else DEFAULT_SORT
    
    return dict(
        layout,
        category_tree=CategoryIndex(layout['categories']).build_tree(
            expanded_ids=[category_id] if category_id else ()
        ),
        products=sort_products(products, sort),
        sort=sort,
        search=search or '',
        category_id=category_id,
    )


def _get_active_product(session, product_id: int) -> Product:
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.is_active == True
    ).first()
    if not product:
        raise NotFoundError('Produto não encontrado')
    return product


def get_product_detail(session, product_id: int) -> dict:
    """Product page: pricing, variant selector, category and related products."""
    product = _get_active_product(session, product_id)
    layout = get_layout(session)
    
    related = []
    if product.category_id:
        related_rows = session.query(Product).filter(
            Product.category_id == product.category_id,
            Product.is_active == True,
            Product.id != product.id
        ).limit(current_app.config.get('CATALOG_RELATED_LIMIT', 4)).all()
        related = [
            dict(
                id=p.id, name=p.name, images=list(p.images or []),
                **price_display(p.price, p.promotional_price)
            )
            for p in related_rows
        ]
    
    variants = load_variants(session, product.id, active_only=True)
    resolver = VariantResolver(product.price, variants, base_stock=product.stock)
    
    return {
        'store': layout['store'],
        'product': dict(
            id=product.id,
            name=product.name,
            description=product.description,
            images=list(product.images or []),
            stock=product.stock,
            out_of_stock=product.is_out_of_stock,
            **price_display(product.price, product.promotional_price)
        ),
        'category': {'id': product.category.id, 'name': product.category.name} if product.category else None,
        'variant_selector': resolver.to_dict(),
        'related_products': related,
    }


def resolve_selection(session, product_id: int, selection: dict) -> dict:
    """Apply a {attribute_id: option_id} map and report the outcome."""
    product = _get_active_product(session, product_id)
    if not isinstance(selection, dict):
        raise BusinessLogicError('Seleção inválida')
    variants = load_variants(session, product.id, active_only=True)
    try:
        resolver = VariantResolver(product.price, variants, base_stock=product.stock, selection=selection)
    except (TypeError, ValueError):
        raise BusinessLogicError('Seleção inválida')
    return resolver.to_dict()


def virtual_try_on(session, product_id: int, user_photo, image_index: int = 0, client=None) -> str:
    """
    Generated image of the product on the customer's photo.
    
    The placement prompt is chosen from the product's category name.
    """
    from vitrine.services.ai_service import get_ai_client, normalize_image_input
    
    product = _get_active_product(session, product_id)
    images = list(product.images or [])
    if not images:
        raise BusinessLogicError('Este produto não possui imagem para o provador virtual')
    if image_index < 0 or image_index >= len(images):
        image_index = 0
    
    photo = normalize_image_input(user_photo, current_app.config.get('AI_IMAGE_MAX_EDGE', 1024))
    client = client or get_ai_client()
    category_name = product.category.name if product.category else None
    logger.info(f"[AI] Virtual try-on for product {product.id}")
    return client.virtual_try_on(photo, images[image_index], product.name, category_name)
