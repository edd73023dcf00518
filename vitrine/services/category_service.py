"""Category service: CRUD with hierarchy guards."""
import logging
from typing import Optional

from vitrine.models import Category, Product
from vitrine.exceptions import BusinessLogicError, NotFoundError
from vitrine.services.category_tree import CategoryIndex
from vitrine.services.cache_service import invalidate_catalog

logger = logging.getLogger(__name__)


def list_categories(session) -> list:
    """All categories ordered by sort_order then name."""
    return session.query(Category).order_by(Category.sort_order, Category.name).all()


def get_category_index(session) -> CategoryIndex:
    return CategoryIndex(list_categories(session))


def get_category(session, category_id: int) -> Category:
    category = session.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError(f'Categoria #{category_id} não encontrada')
    return category


def _validate_name(name) -> str:
    name = (name or '').strip()
    if not name:
        raise BusinessLogicError('O nome da categoria é obrigatório')
    return name


def _validate_parent(session, category_id: Optional[int], parent_id: Optional[int]):
    """Reject self-parenting, unknown parents and cycles."""
    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise BusinessLogicError('Uma categoria não pode ser pai de si mesma')
    get_category(session, parent_id)
    if category_id is not None and get_category_index(session).would_create_cycle(category_id, parent_id):
        raise BusinessLogicError('Uma subcategoria não pode ser escolhida como categoria pai')


def create_category(session, name, parent_id=None, sort_order=0) -> Category:
    """
    Create a category.

    Raises:
        BusinessLogicError: missing name or invalid parent
    """
    name = _validate_name(name)
    _validate_parent(session, None, parent_id)

    try:
        category = Category(name=name, parent_id=parent_id, sort_order=sort_order or 0)
        session.add(category)
        session.commit()
        invalidate_catalog()
        logger.info(f"Category created: {category.id} ({category.name})")
        return category
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao criar categoria: {str(e)}')


def update_category(session, category_id: int, name, parent_id=None, sort_order=0) -> Category:
    """
    Update a category.

    Guards run before any write: a category cannot become its own
    parent nor hang under one of its own descendants.
    """
    category = get_category(session, category_id)
    name = _validate_name(name)
    _validate_parent(session, category_id, parent_id)

    try:
        category.name = name
        category.parent_id = parent_id
        category.sort_order = sort_order or 0
        session.commit()
        invalidate_catalog()
        return category
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao atualizar categoria: {str(e)}')


def delete_category(session, category_id: int) -> dict:
    """
    Delete a category that has no children.

    Products of the deleted category are kept, uncategorized.
    """
    category = get_category(session, category_id)

    has_children = session.query(Category.id).filter(Category.parent_id == category_id).first()
    if has_children:
        raise BusinessLogicError(
            'Esta categoria possui subcategorias. Remova ou mova as subcategorias primeiro.'
        )

    try:
        session.query(Product).filter(Product.category_id == category_id).update(
            {Product.category_id: None}, synchronize_session=False
        )
        session.delete(category)
        session.commit()
        invalidate_catalog()
        logger.info(f"Category deleted: {category_id}")
        return {'success': True, 'message': 'Categoria excluída com sucesso'}
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir categoria: {str(e)}')