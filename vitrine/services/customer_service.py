"""Customer management: listing, search and CRUD."""
import logging
from typing import Optional

from sqlalchemy import or_, func

from vitrine.models import Customer
from vitrine.exceptions import BusinessLogicError, NotFoundError
from vitrine.utils.search import contains_pattern, LIKE_ESCAPE

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10


def customer_to_dict(customer: Customer) -> dict:
    return {
        'id': customer.id,
        'name': customer.name,
        'phone': customer.phone,
        'address': customer.address,
        'notes': customer.notes,
        'created_at': customer.created_at.isoformat() if customer.created_at else None,
    }


def _search_filter(term: str):
    pattern = contains_pattern(term.lower())
    return or_(
        func.lower(Customer.name).like(pattern, escape=LIKE_ESCAPE),
        func.lower(Customer.phone).like(pattern, escape=LIKE_ESCAPE),
        func.lower(Customer.address).like(pattern, escape=LIKE_ESCAPE),
    )


def list_customers(session, search: Optional[str] = None) -> list:
    """Customers ordered by name, optionally filtered by name/phone/address."""
    query = session.query(Customer)
    search = (search or '').strip()
    if search:
        query = query.filter(_search_filter(search))
    return query.order_by(Customer.name.asc()).all()


def search_customers(session, term: Optional[str], limit: int = SEARCH_LIMIT) -> list:
    """Autocomplete lookup for the sale screen."""
    term = (term or '').strip()
    if not term:
        return []
    return session.query(Customer).filter(
        _search_filter(term)
    ).order_by(Customer.name.asc()).limit(limit).all()


def get_customer(session, customer_id: int) -> Customer:
    customer = session.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError(f'Cliente #{customer_id} não encontrado')
    return customer


def _clean(data: dict, key: str) -> Optional[str]:
    value = (data.get(key) or '').strip()
    return value or None


def save_customer(session, data: dict, customer_id: Optional[int] = None) -> Customer:
    """
    Create or update a customer.

    Raises:
        BusinessLogicError: when the name is missing
        NotFoundError: when updating an unknown customer
    """
    name = (data.get('name') or '').strip()
    if not name:
        raise BusinessLogicError('O nome do cliente é obrigatório')

    try:
        if customer_id:
            customer = get_customer(session, customer_id)
        else:
            customer = Customer()
            session.add(customer)

        customer.name = name
        customer.phone = _clean(data, 'phone')
        customer.address = _clean(data, 'address')
        customer.notes = _clean(data, 'notes')

        session.commit()
        return customer
    except (BusinessLogicError, NotFoundError):
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"Error saving customer: {e}")
        raise Exception(f'Erro ao salvar cliente: {str(e)}')


def delete_customer(session, customer_id: int) -> None:
    """Delete a customer; past sales keep their snapshot with no customer."""
    customer = get_customer(session, customer_id)
    try:
        session.delete(customer)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception(f"Error deleting customer {customer_id}: {e}")
        raise Exception(f'Erro ao excluir cliente: {str(e)}')
