"""Product management: CRUD, duplication, images and import from photo."""
import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import or_, func

from vitrine.models import Product, Category
from vitrine.exceptions import BusinessLogicError, NotFoundError
from vitrine.utils.number_format import parse_decimal, parse_int
from vitrine.services.cache_service import invalidate_catalog
from vitrine.utils.search import contains_pattern, LIKE_ESCAPE

logger = logging.getLogger(__name__)

IMPORT_MATCH_LIMIT = 5
IMPORT_MIN_WORD_LENGTH = 3  # words of 1-2 chars never drive a match


def product_to_dict(product: Product) -> dict:
    return {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'price': product.price,
        'promotional_price': product.promotional_price,
        'cost_price': product.cost_price,
        'unit_price': product.unit_price,
        'has_promotion': product.has_promotion,
        'stock': product.stock,
        'out_of_stock': product.is_out_of_stock,
        'category_id': product.category_id,
        'category_name': product.category.name if product.category else None,
        'images': list(product.images or []),
        'is_active': product.is_active,
        'created_at': product.created_at.isoformat() if product.created_at else None,
    }


def list_products(session, search: Optional[str] = None, category_id: Optional[int] = None,
                  active_only: bool = False) -> list:
    """Products by newest first, optionally filtered by name search and category."""
    query = session.query(Product)
    if active_only:
        query = query.filter(Product.is_active == True)
    if category_id:
        query = query.filter(Product.category_id == category_id)
    search = (search or '').strip()
    if search:
        query = query.filter(func.lower(Product.name).like(contains_pattern(search.lower()), escape=LIKE_ESCAPE))
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(session, product_id: int) -> Product:
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError(f'Produto #{product_id} não encontrado')
    return product


def _validate_product_form(session, data: dict) -> dict:
    """
    Validate product input.
    
    Name and price are required. An empty stock means the product
    does not track inventory.
    
    Raises:
        BusinessLogicError: on any invalid field
    """
    name = (data.get('name') or '').strip()
    if not name:
        raise BusinessLogicError('O nome do produto é obrigatório')
    
    try:
        price = parse_decimal(data.get('price'), 'Preço')
        promotional_price = parse_decimal(data.get('promotional_price'), 'Preço promocional')
        cost_price = parse_decimal(data.get('cost_price'), 'Preço de custo')
        stock = parse_int(data.get('stock'), 'Estoque', minimum=0)
        category_id = parse_int(data.get('category_id'), 'Categoria')
    except ValueError as e:
        raise BusinessLogicError(str(e))
    
    if price is None:
        raise BusinessLogicError('O preço do produto é obrigatório')
    
    if category_id is not None:
        if not session.query(Category.id).filter(Category.id == category_id).first():
            raise BusinessLogicError('Categoria não encontrada')
    
    images = data.get('images') or []
    if isinstance(images, str):
        images = [images]
    images = [str(url).strip() for url in images if url and str(url).strip()]
    
    return {
        'name': name,
        'description': (data.get('description') or '').strip() or None,
        'price': price,
        'promotional_price': promotional_price,
        'cost_price': cost_price,
        'stock': stock,
        'category_id': category_id,
        'images': images,
        'is_active': bool(data.get('is_active', True)),
    }


def save_product(session, data: dict, product_id: Optional[int] = None) -> Product:
    """Create (product_id=None) or update a product."""
    values = _validate_product_form(session, data)
    product = get_product(session, product_id) if product_id else Product()
    
    for field, value in values.items():
        setattr(product, field, value)
    
    try:
        session.add(product)
        session.commit()
        invalidate_catalog()
        logger.info(f"Product saved: {product.id} ({product.name})")
        return product
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar produto: {str(e)}')


def duplicate_product(session, product_id: int) -> Product:
    """Copy of the product named "<name> (Cópia)". Variants are not copied."""
    original = get_product(session, product_id)
    try:
        copy = Product(
            name=f'{original.name} (Cópia)',
            description=original.description,
            price=original.price,
            promotional_price=original.promotional_price,
            cost_price=original.cost_price,
            stock=original.stock,
            category_id=original.category_id,
            images=list(original.images or []),
            is_active=original.is_active,
        )
        session.add(copy)
        session.commit()
        invalidate_catalog()
        return copy
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao duplicar produto: {str(e)}')


def delete_product(session, product_id: int) -> None:
    """Delete a product. Past sale items keep their snapshot and lose the link."""
    product = get_product(session, product_id)
    try:
        session.delete(product)
        session.commit()
        invalidate_catalog()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir produto: {str(e)}')


def add_product_image(session, product_id: int, file) -> Product:
    """Upload an image to object storage and append its URL."""
    from vitrine.services.storage_service import get_storage_service
    
    product = get_product(session, product_id)
    storage = get_storage_service()
    try:
        url = storage.upload_file(file, storage.build_object_name('products', file.filename))
    except ValueError as e:
        raise BusinessLogicError(str(e))
    
    try:
        product.images = list(product.images or []) + [url]
        session.commit()
        invalidate_catalog()
        return product
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar imagem: {str(e)}')


def remove_product_image(session, product_id: int, url: str) -> Product:
    from vitrine.services.storage_service import get_storage_service
    
    product = get_product(session, product_id)
    images = list(product.images or [])
    if url not in images:
        raise NotFoundError('Imagem não encontrada no produto')
    
    try:
        images.remove(url)
        product.images = images
        session.commit()
        invalidate_catalog()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao remover imagem: {str(e)}')
    
    storage = get_storage_service()
    object_name = storage.object_name_from_url(url)
    if object_name:
        storage.delete_file(object_name)
    return product


# ---------------------------------------------------------------------------
# Import from photo
# ---------------------------------------------------------------------------

def name_similarity(extracted_name: str, candidate_name: str) -> int:
    """
    Percentage of the extracted name's words found in the candidate.
    
    A word matches when either word contains the other.
    """
    extracted_words = extracted_name.lower().split()
    candidate_words = candidate_name.lower().split()
    matching = [
        word for word in extracted_words
        if any(other in word or word in other for other in candidate_words)
    ]
    ratio = len(matching) / max(len(extracted_words), 1)
    return int(math.floor(ratio * 100 + 0.5))


def find_similar_products(session, extracted_name: str, limit: int = IMPORT_MATCH_LIMIT) -> list:
    """Existing products sharing a significant word with the extracted name."""
    terms = [w for w in (extracted_name or '').lower().split() if len(w) >= IMPORT_MIN_WORD_LENGTH]
    if not terms:
        return []
    
    candidates = session.query(Product).filter(
        or_(*[func.lower(Product.name).like(contains_pattern(term), escape=LIKE_ESCAPE) for term in terms])
    ).limit(limit).all()
    
    matches = [
        {
            'id': product.id,
            'name': product.name,
            'price': product.price,
            'stock': product.stock,
            'similarity': name_similarity(extracted_name, product.name),
        }
        for product in candidates
    ]
    matches.sort(key=lambda m: m['similarity'], reverse=True)
    return matches


def extract_products_from_photo(session, image, client=None) -> list:
    """
    Read product rows from an invoice photo and attach similar products.
    
    Rows with matches are proposed as 'link' (add stock), others as 'create'.
    """
    from vitrine.services.ai_service import get_ai_client, normalize_image_input
    from flask import current_app
    
    data_url = normalize_image_input(image, current_app.config.get('AI_IMAGE_MAX_EDGE', 1024))
    client = client or get_ai_client()
    rows = client.extract_products(data_url)
    
    result = []
    for row in rows:
        name = str(row.get('name') or '').strip()
        if not name:
            continue
        similar = find_similar_products(session, name)
        result.append({
            'name': name,
            'quantity': row.get('quantity') or 1,
            'unitPrice': row.get('unitPrice') or 0,
            'description': row.get('description'),
            'similarProducts': similar,
            'action': 'link' if similar else 'create',
            'linkedProductId': similar[0]['id'] if similar else None,
        })
    logger.info(f"[AI] Extracted {len(result)} products from photo")
    return result


def apply_import(session, rows: list, profit_margin=0, default_category_id: Optional[int] = None) -> dict:
    """
    Persist reviewed import rows in one transaction.
    
    'create' rows become products priced at cost plus margin;
    'link' rows add their quantity to the linked product's stock.
    """
    try:
        margin = parse_decimal(profit_margin, 'Margem') or Decimal('0')
    except ValueError as e:
        raise BusinessLogicError(str(e))
    
    created, updated = 0, 0
    try:
        for row in rows or []:
            quantity = int(row.get('quantity') or 0)
            action = row.get('action', 'create')
            
            if action == 'link' and row.get('linkedProductId'):
                product = session.query(Product).filter(
                    Product.id == int(row['linkedProductId'])
                ).with_for_update().first()
                if not product:
                    raise NotFoundError(f"Produto #{row['linkedProductId']} não encontrado")
                product.stock = (product.stock or 0) + quantity
                updated += 1
                continue
            
            name = str(row.get('name') or '').strip()
            if not name:
                raise BusinessLogicError('Todos os produtos importados precisam de nome')
            cost = parse_decimal(row.get('unitPrice'), 'Valor unitário') or Decimal('0.00')
            price = (cost * (Decimal('1') + margin / Decimal('100'))).quantize(
                Decimal('0.01'), rounding=ROUND_HALF_UP
            )
            session.add(Product(
                name=name,
                description=(row.get('description') or None),
                cost_price=cost,
                price=price,
                stock=quantity,
                category_id=default_category_id,
                is_active=True,
                images=[],
            ))
            created += 1
        
        session.commit()
        invalidate_catalog()
        return {
            'success': True,
            'created': created,
            'updated': updated,
            'message': f'{created} produtos criados, {updated} estoques atualizados'
        }
    except (BusinessLogicError, NotFoundError):
        session.rollback()
        raise
    except ValueError as e:
        session.rollback()
        raise BusinessLogicError(str(e))
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar produtos: {str(e)}')