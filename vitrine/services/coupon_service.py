"""Coupon management and the redemption gate."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError

from vitrine.models import Coupon, CustomerCoupon, Customer, DiscountType
from vitrine.exceptions import BusinessLogicError, NotFoundError, CouponError
from vitrine.services.cart import to_money, compute_coupon_discount
from vitrine.utils.formatters import money_br
from vitrine.utils.number_format import parse_decimal, parse_int, parse_datetime

logger = logging.getLogger(__name__)


def normalize_code(code) -> str:
    return (code or '').strip().upper()


def coupon_status(coupon: Coupon, now: Optional[datetime] = None) -> str:
    """Label with precedence inactive > expired > exhausted > active."""
    now = now or datetime.now()
    if not coupon.is_active:
        return 'inactive'
    if coupon.valid_until is not None and coupon.valid_until < now:
        return 'expired'
    if coupon.max_uses is not None and (coupon.current_uses or 0) >= coupon.max_uses:
        return 'exhausted'
    return 'active'


def _check_min_purchase(coupon: Coupon, subtotal: Decimal):
    min_purchase = to_money(coupon.min_purchase)
    if to_money(subtotal) < min_purchase:
        raise CouponError(
            f'Compra mínima de {money_br(min_purchase)} para usar este cupom',
            'min_purchase'
        )


def validate_coupon(session, code, subtotal, now: Optional[datetime] = None) -> Coupon:
    """
    Run the redemption gate for a typed code.
    
    Checks, first failure wins: exists, active, not expired,
    not exhausted, subtotal reaches min_purchase.
    
    Returns:
        The Coupon
    
    Raises:
        CouponError: with the failing reason code
    """
    code = normalize_code(code)
    if not code:
        raise CouponError('Informe o código do cupom', 'not_found')
    
    coupon = session.query(Coupon).filter(Coupon.code == code).first()
    if not coupon:
        raise CouponError('Cupom não encontrado', 'not_found')
    
    status = coupon_status(coupon, now)
    if status == 'inactive':
        raise CouponError('Este cupom está inativo', 'inactive')
    if status == 'expired':
        raise CouponError('Este cupom expirou', 'expired')
    if status == 'exhausted':
        raise CouponError('Este cupom atingiu o limite de usos', 'exhausted')
    
    _check_min_purchase(coupon, subtotal)
    return coupon


def validate_customer_coupon(session, customer_id: int, coupon_id: int, subtotal) -> Coupon:
    """
    Gate for a coupon picked from the customer's linked list.
    
    Linked coupons were vetted when granted, so only the minimum
    purchase is enforced here.
    """
    link = session.query(CustomerCoupon).filter(
        CustomerCoupon.customer_id == customer_id,
        CustomerCoupon.coupon_id == coupon_id
    ).first()
    if not link:
        raise CouponError('Cupom não vinculado a este cliente', 'not_found')
    
    _check_min_purchase(link.coupon, subtotal)
    return link.coupon


def preview_discount(coupon: Coupon, subtotal) -> Decimal:
    return compute_coupon_discount(coupon.discount_type, coupon.discount_value, subtotal)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def coupon_to_dict(coupon: Coupon) -> dict:
    return {
        'id': coupon.id,
        'code': coupon.code,
        'description': coupon.description,
        'discount_type': coupon.discount_type,
        'discount_value': coupon.discount_value,
        'min_purchase': coupon.min_purchase,
        'max_uses': coupon.max_uses,
        'current_uses': coupon.current_uses,
        'valid_from': coupon.valid_from.isoformat() if coupon.valid_from else None,
        'valid_until': coupon.valid_until.isoformat() if coupon.valid_until else None,
        'is_active': coupon.is_active,
        'status': coupon_status(coupon),
    }


def list_coupons(session) -> list:
    return session.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


def get_coupon(session, coupon_id: int) -> Coupon:
    coupon = session.query(Coupon).filter(Coupon.id == coupon_id).first()
    if not coupon:
        raise NotFoundError(f'Cupom #{coupon_id} não encontrado')
    return coupon


def _validate_coupon_form(data: dict) -> dict:
    """Validate and normalize coupon input. Raises BusinessLogicError."""
    code = normalize_code(data.get('code'))
    if not code:
        raise BusinessLogicError('O código do cupom é obrigatório')
    
    discount_type = (data.get('discount_type') or DiscountType.PERCENTAGE.value).strip().lower()
    if discount_type not in (DiscountType.PERCENTAGE.value, DiscountType.FIXED.value):
        raise BusinessLogicError('Tipo de desconto inválido')
    
    try:
        discount_value = parse_decimal(data.get('discount_value'), 'Valor do desconto')
        min_purchase = parse_decimal(data.get('min_purchase'), 'Compra mínima')
        max_uses = parse_int(data.get('max_uses'), 'Limite de usos', minimum=1)
        valid_from = parse_datetime(data.get('valid_from'), 'Data de início')
        valid_until = parse_datetime(data.get('valid_until'), 'Data de validade')
    except ValueError as e:
        raise BusinessLogicError(str(e))
    
    if discount_value is None or discount_value <= 0:
        raise BusinessLogicError('O valor do desconto deve ser maior que zero')
    
    return {
        'code': code,
        'description': (data.get('description') or '').strip() or None,
        'discount_type': discount_type,
        'discount_value': discount_value,
        'min_purchase': min_purchase or Decimal('0.00'),
        'max_uses': max_uses,
        'valid_from': valid_from,
        'valid_until': valid_until,
        'is_active': bool(data.get('is_active', True)),
    }


def save_coupon(session, data: dict, coupon_id: Optional[int] = None) -> Coupon:
    """Create (coupon_id=None) or update a coupon."""
    values = _validate_coupon_form(data)
    coupon = get_coupon(session, coupon_id) if coupon_id else Coupon(current_uses=0)
    
    for field, value in values.items():
        if field == 'valid_from' and value is None:
            value = coupon.valid_from or datetime.now()
        setattr(coupon, field, value)
    
    try:
        session.add(coupon)
        session.commit()
        logger.info(f"Coupon saved: {coupon.id} ({coupon.code})")
        return coupon
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Duplicate coupon code {values['code']}: {e}")
        raise BusinessLogicError('Já existe um cupom com este código')
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar cupom: {str(e)}')


def toggle_coupon(session, coupon_id: int) -> Coupon:
    coupon = get_coupon(session, coupon_id)
    try:
        coupon.is_active = not coupon.is_active
        session.commit()
        return coupon
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao atualizar cupom: {str(e)}')


def delete_coupon(session, coupon_id: int) -> None:
    coupon = get_coupon(session, coupon_id)
    try:
        session.delete(coupon)
        session.commit()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir cupom: {str(e)}')


# ---------------------------------------------------------------------------
# Customer links
# ---------------------------------------------------------------------------

def _get_customer(session, customer_id: int) -> Customer:
    customer = session.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError(f'Cliente #{customer_id} não encontrado')
    return customer


def list_customer_coupons(session, customer_id: int) -> list:
    """Coupons linked to a customer."""
    _get_customer(session, customer_id)
    return session.query(Coupon).join(
        CustomerCoupon, CustomerCoupon.coupon_id == Coupon.id
    ).filter(
        CustomerCoupon.customer_id == customer_id
    ).order_by(Coupon.code).all()


def available_coupons_for_customer(session, customer_id: int) -> list:
    """Active coupons not yet linked to the customer."""
    _get_customer(session, customer_id)
    linked = session.query(CustomerCoupon.coupon_id).filter(
        CustomerCoupon.customer_id == customer_id
    )
    return session.query(Coupon).filter(
        Coupon.is_active == True,
        ~Coupon.id.in_(linked)
    ).order_by(Coupon.code).all()


def link_coupon(session, customer_id: int, coupon_id: int) -> CustomerCoupon:
    """Grant a coupon to a customer. A second link for the same pair is rejected."""
    _get_customer(session, customer_id)
    get_coupon(session, coupon_id)
    
    existing = session.query(CustomerCoupon).filter(
        CustomerCoupon.customer_id == customer_id,
        CustomerCoupon.coupon_id == coupon_id
    ).first()
    if existing:
        raise BusinessLogicError('Este cupom já está vinculado ao cliente')
    
    try:
        link = CustomerCoupon(customer_id=customer_id, coupon_id=coupon_id)
        session.add(link)
        session.commit()
        return link
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError('Este cupom já está vinculado ao cliente')
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao vincular cupom: {str(e)}')


def unlink_coupon(session, customer_id: int, coupon_id: int) -> None:
    link = session.query(CustomerCoupon).filter(
        CustomerCoupon.customer_id == customer_id,
        CustomerCoupon.coupon_id == coupon_id
    ).first()
    if not link:
        raise NotFoundError('Vínculo de cupom não encontrado')
    try:
        session.delete(link)
        session.commit()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao desvincular cupom: {str(e)}')
