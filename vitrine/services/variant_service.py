"""Variant editor and attribute/option management."""
import logging
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import selectinload

from vitrine.models import Product, ProductVariant, ProductAttribute, AttributeOption
from vitrine.exceptions import BusinessLogicError, NotFoundError
from vitrine.utils.number_format import parse_decimal
from vitrine.services.cache_service import invalidate_catalog

logger = logging.getLogger(__name__)


def option_to_dict(option: AttributeOption) -> dict:
    attribute = option.attribute
    return {
        'id': option.id,
        'attribute_id': option.attribute_id,
        'attribute_name': attribute.name if attribute else None,
        'attribute_sort_order': attribute.sort_order if attribute else 0,
        'label': option.label,
        'image_url': option.image_url,
        'sort_order': option.sort_order,
    }


def variant_to_dict(variant: ProductVariant) -> dict:
    return {
        'id': variant.id,
        'product_id': variant.product_id,
        'sku': variant.sku,
        'price_adjustment': variant.price_adjustment,
        'stock': variant.stock,
        'is_active': variant.is_active,
        'options': [option_to_dict(option) for option in variant.options],
    }


def load_variants(session, product_id: int, active_only: bool = False) -> list:
    """Variants of a product as resolver-ready dicts."""
    query = session.query(ProductVariant).options(
        selectinload(ProductVariant.options).selectinload(AttributeOption.attribute)
    ).filter(ProductVariant.product_id == product_id)
    if active_only:
        query = query.filter(ProductVariant.is_active == True)
    return [variant_to_dict(v) for v in query.order_by(ProductVariant.id).all()]


def load_variants_for_products(session, product_ids: Iterable[int]) -> dict:
    """Active variants grouped by product id (catalog listing)."""
    product_ids = list(product_ids)
    grouped = {pid: [] for pid in product_ids}
    if not product_ids:
        return grouped
    variants = session.query(ProductVariant).options(
        selectinload(ProductVariant.options).selectinload(AttributeOption.attribute)
    ).filter(
        ProductVariant.product_id.in_(product_ids),
        ProductVariant.is_active == True
    ).order_by(ProductVariant.id).all()
    for variant in variants:
        grouped[variant.product_id].append(variant_to_dict(variant))
    return grouped


def _parse_adjustment(value) -> Decimal:
    try:
        adjustment = parse_decimal(value, 'Ajuste de preço', allow_negative=True)
    except ValueError as e:
        raise BusinessLogicError(str(e))
    return adjustment if adjustment is not None else Decimal('0.00')


def _parse_stock(value) -> int:
    if value is None or value == '':
        return 0
    try:
        stock = int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError('Estoque inválido')
    if stock < 0:
        raise BusinessLogicError('O estoque não pode ser negativo')
    return stock


def _get_variant(session, variant_id: int) -> ProductVariant:
    variant = session.query(ProductVariant).filter(ProductVariant.id == variant_id).first()
    if not variant:
        raise NotFoundError(f'Variante #{variant_id} não encontrada')
    return variant


def add_variant(session, product_id: int, option_ids, sku: Optional[str] = None,
                price_adjustment=None, stock=None) -> ProductVariant:
    """
    Create a variant from a set of option ids.
    
    Args:
        session: SQLAlchemy session
        product_id: Owning product
        option_ids: One option per attribute axis (at least one)
        sku: Optional stock keeping unit
        price_adjustment: Added to the product base price
        stock: Units available for this combination
    
    Returns:
        The new ProductVariant
    
    Raises:
        BusinessLogicError: no options, two options of the same attribute,
            or a combination that already exists
        NotFoundError: product or option missing
    """
    option_ids = {int(oid) for oid in (option_ids or [])}
    if not option_ids:
        raise BusinessLogicError('Selecione pelo menos uma opção de atributo')
    
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError(f'Produto #{product_id} não encontrado')
    
    options = session.query(AttributeOption).filter(AttributeOption.id.in_(option_ids)).all()
    if len(options) != len(option_ids):
        raise NotFoundError('Uma ou mais opções de atributo não foram encontradas')
    
    attribute_ids = [option.attribute_id for option in options]
    if len(set(attribute_ids)) != len(attribute_ids):
        raise BusinessLogicError('Escolha apenas uma opção por atributo')
    
    for existing in product.variants:
        if existing.option_ids == frozenset(option_ids):
            raise BusinessLogicError('Já existe uma variante com essa combinação')
    
    try:
        variant = ProductVariant(
            product_id=product.id,
            sku=(sku or '').strip() or None,
            price_adjustment=_parse_adjustment(price_adjustment),
            stock=_parse_stock(stock),
            is_active=True,
        )
        variant.options = options
        session.add(variant)
        session.commit()
        invalidate_catalog()
        logger.info(f"Variant created: {variant.id} for product {product_id}")
        return variant
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao criar variante: {str(e)}')


def update_variant(session, variant_id: int, **fields) -> ProductVariant:
    """Update sku, price_adjustment, stock and/or is_active."""
    variant = _get_variant(session, variant_id)
    
    if 'sku' in fields:
        variant.sku = (fields['sku'] or '').strip() or None
    if 'price_adjustment' in fields:
        variant.price_adjustment = _parse_adjustment(fields['price_adjustment'])
    if 'stock' in fields:
        variant.stock = _parse_stock(fields['stock'])
    if 'is_active' in fields:
        variant.is_active = bool(fields['is_active'])
    
    try:
        session.commit()
        invalidate_catalog()
        return variant
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao atualizar variante: {str(e)}')


def delete_variant(session, variant_id: int) -> None:
    variant = _get_variant(session, variant_id)
    try:
        session.delete(variant)
        session.commit()
        invalidate_catalog()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir variante: {str(e)}')


# ---------------------------------------------------------------------------
# Attributes and options
# ---------------------------------------------------------------------------

def list_attributes(session, active_only: bool = False) -> list:
    query = session.query(ProductAttribute).options(selectinload(ProductAttribute.options))
    if active_only:
        query = query.filter(ProductAttribute.is_active == True)
    return query.order_by(ProductAttribute.sort_order, ProductAttribute.name).all()


def attribute_to_dict(attribute: ProductAttribute) -> dict:
    return {
        'id': attribute.id,
        'name': attribute.name,
        'sort_order': attribute.sort_order,
        'is_active': attribute.is_active,
        'options': [
            {
                'id': option.id,
                'label': option.label,
                'image_url': option.image_url,
                'sort_order': option.sort_order,
            }
            for option in attribute.options
        ],
    }


def _get_attribute(session, attribute_id: int) -> ProductAttribute:
    attribute = session.query(ProductAttribute).filter(ProductAttribute.id == attribute_id).first()
    if not attribute:
        raise NotFoundError(f'Atributo #{attribute_id} não encontrado')
    return attribute


def _get_option(session, option_id: int) -> AttributeOption:
    option = session.query(AttributeOption).filter(AttributeOption.id == option_id).first()
    if not option:
        raise NotFoundError(f'Opção #{option_id} não encontrada')
    return option


def save_attribute(session, name, sort_order=0, is_active=True, attribute_id=None) -> ProductAttribute:
    """Create (attribute_id=None) or update an attribute."""
    name = (name or '').strip()
    if not name:
        raise BusinessLogicError('O nome do atributo é obrigatório')
    
    attribute = _get_attribute(session, attribute_id) if attribute_id else ProductAttribute()
    attribute.name = name
    attribute.sort_order = int(sort_order or 0)
    attribute.is_active = bool(is_active)
    
    try:
        session.add(attribute)
        session.commit()
        invalidate_catalog()
        return attribute
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar atributo: {str(e)}')


def delete_attribute(session, attribute_id: int) -> None:
    """Delete an attribute and all of its options."""
    attribute = _get_attribute(session, attribute_id)
    try:
        session.delete(attribute)
        session.commit()
        invalidate_catalog()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir atributo: {str(e)}')


def save_option(session, attribute_id: int, label, image_url=None, sort_order=0, option_id=None) -> AttributeOption:
    """Create (option_id=None) or update an option of an attribute."""
    label = (label or '').strip()
    if not label:
        raise BusinessLogicError('O rótulo da opção é obrigatório')
    
    attribute = _get_attribute(session, attribute_id)
    if option_id:
        option = _get_option(session, option_id)
        if option.attribute_id != attribute.id:
            raise NotFoundError(f'Opção #{option_id} não pertence ao atributo')
    else:
        option = AttributeOption(attribute_id=attribute.id)
    
    option.label = label
    option.image_url = (image_url or '').strip() or None
    option.sort_order = int(sort_order or 0)
    
    try:
        session.add(option)
        session.commit()
        invalidate_catalog()
        return option
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar opção: {str(e)}')


def delete_option(session, option_id: int) -> None:
    option = _get_option(session, option_id)
    try:
        session.delete(option)
        session.commit()
        invalidate_catalog()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir opção: {str(e)}')
