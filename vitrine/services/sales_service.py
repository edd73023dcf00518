"""
Sales service with transactional logic.
Turns a session cart into a persisted Sale with its item snapshots.
"""
import logging
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, cast, String
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from vitrine.models import Sale, SaleItem, SaleStatus, Coupon, Customer
from vitrine.exceptions import BusinessLogicError, NotFoundError, CouponError
from vitrine.services.cart import Cart, to_money
from vitrine.services.coupon_service import validate_coupon, validate_customer_coupon
from vitrine.services.cache_service import invalidate_catalog
from vitrine.utils.search import contains_pattern, LIKE_ESCAPE

logger = logging.getLogger(__name__)


def _recheck_coupon(session, cart: Cart) -> Optional[Coupon]:
    """
    Re-run the coupon gate at finalization time.

    Usage may have moved since the coupon was applied; the row is
    locked so concurrent sales cannot both take the last use.
    """
    if not cart.coupon:
        return None

    coupon = session.query(Coupon).filter(
        Coupon.id == cart.coupon['id']
    ).with_for_update().first()
    if not coupon:
        raise CouponError('Cupom não encontrado', 'not_found')

    if cart.coupon.get('via_customer') and cart.customer_id:
        return validate_customer_coupon(session, cart.customer_id, coupon.id, cart.subtotal)
    return validate_coupon(session, coupon.code, cart.subtotal)


def finalize_sale(session, cart: Cart) -> Sale:
    """
    Persist the cart as a completed sale.
    
    Steps (single transaction):
    1. Validate cart is not empty and not already sold (idempotency key)
    2. Re-validate the applied coupon
    3. Create Sale with subtotal/discount/total snapshot
    4. Increment coupon usage
    5. Create one SaleItem per line (stock is decremented on insert)
    6. Commit
    
    Args:
        session: SQLAlchemy session
        cart: Cart in BUILDING state
    
    Returns:
        The persisted Sale
    
    Raises:
        BusinessLogicError: empty cart, cart already sold or failed coupon gate
        Exception: storage failures (whole sale rolled back)
    """
    cart.begin_finalize()
    
    try:
        existing_sale = session.query(Sale).filter_by(idempotency_key=cart.idempotency_key).first()
        if existing_sale:
            raise BusinessLogicError(f'Esta venda já foi registrada (venda #{existing_sale.id})')

        coupon = _recheck_coupon(session, cart)
        
        subtotal = cart.subtotal
        coupon_discount = cart.coupon_discount if coupon else Decimal('0.00')
        manual_discount = to_money(cart.manual_discount)
        total = max(Decimal('0.00'), subtotal - coupon_discount - manual_discount)
        
        sale = Sale(
            customer_id=cart.customer_id,
            subtotal=subtotal,
            coupon_id=coupon.id if coupon else None,
            coupon_discount=coupon_discount,
            manual_discount=manual_discount,
            total=total.quantize(Decimal('0.01')),
            status=SaleStatus.COMPLETED.value,
            idempotency_key=cart.idempotency_key,
            created_at=datetime.now(),
        )
        session.add(sale)
        
        if coupon:
            coupon.current_uses = (coupon.current_uses or 0) + 1
        
        for line in cart.items:
            unit_price = to_money(line['unit_price'])
            sale.items.append(SaleItem(
                product_id=line['product_id'],
                product_name=line['name'],
                quantity=line['quantity'],
                unit_price=unit_price,
                total_price=(unit_price * line['quantity']).quantize(Decimal('0.01')),
            ))
        
        session.commit()
        cart.mark_completed()
        invalidate_catalog()
        logger.info(f"[SALES] Sale {sale.id} completed: total={sale.total} items={len(cart.items)}")
        return sale
    
    except (BusinessLogicError, NotFoundError):
        session.rollback()
        cart.abort_finalize()
        raise
    except IntegrityError as e:
        session.rollback()
        cart.abort_finalize()
        if session.query(Sale).filter_by(idempotency_key=cart.idempotency_key).first():
            logger.warning(f"[SALES] Duplicate finalize refused (race): {cart.idempotency_key[:8]}...")
            raise BusinessLogicError('Esta venda já foi registrada')
        logger.exception(f"[SALES] Error finalizing sale: {e}")
        raise Exception(f'Erro ao finalizar venda: {str(e)}')
    except Exception as e:
        session.rollback()
        cart.abort_finalize()
        logger.exception(f"[SALES] Error finalizing sale: {e}")
        raise Exception(f'Erro ao finalizar venda: {str(e)}')


def default_date_range(days: int = 30):
    today = date.today()
    return today - timedelta(days=days), today


def list_sales(session, start_date: Optional[date] = None, end_date: Optional[date] = None,
               search: Optional[str] = None, default_days: int = 30) -> list:
    """
    Sales inside a date range (inclusive days), newest first.
    
    Search matches the customer name or the sale id.
    """
    if start_date is None or end_date is None:
        default_start, default_end = default_date_range(default_days)
        start_date = start_date or default_start
        end_date = end_date or default_end
    
    start_dt = datetime.combine(start_date, time.min)
    end_dt = datetime.combine(end_date, time.max)
    
    query = session.query(Sale).options(
        selectinload(Sale.items),
        selectinload(Sale.customer)
    ).outerjoin(Customer, Sale.customer_id == Customer.id).filter(
        Sale.created_at >= start_dt,
        Sale.created_at <= end_dt
    )
    
    search = (search or '').strip()
    if search:
        pattern = contains_pattern(search)
        query = query.filter(or_(
            Customer.name.ilike(pattern, escape=LIKE_ESCAPE),
            cast(Sale.id, String).ilike(pattern, escape=LIKE_ESCAPE)
        ))
    
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def get_sale(session, sale_id: int) -> Sale:
    sale = session.query(Sale).options(selectinload(Sale.items)).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError(f'Venda #{sale_id} não encontrada')
    return sale


def sale_to_dict(sale: Sale, with_items: bool = True) -> dict:
    data = {
        'id': sale.id,
        'customer_id': sale.customer_id,
        'customer_name': sale.customer.name if sale.customer else None,
        'subtotal': sale.subtotal,
        'coupon_id': sale.coupon_id,
        'coupon_discount': sale.coupon_discount,
        'manual_discount': sale.manual_discount,
        'total': sale.total,
        'status': sale.status,
        'created_at': sale.created_at.isoformat() if sale.created_at else None,
    }
    if with_items:
        data['items'] = [
            {
                'id': item.id,
                'product_id': item.product_id,
                'product_name': item.product_name,
                'quantity': item.quantity,
                'unit_price': item.unit_price,
                'total_price': item.total_price,
            }
            for item in sale.items
        ]
    return data
