"""Sales blueprint: point-of-sale cart, finalization, history and deletion."""
from flask import Blueprint, request, session, jsonify, current_app

from vitrine.database import get_session
from vitrine.exceptions import BusinessLogicError, NotFoundError
from vitrine.middleware import require_admin
from vitrine.models import Product
from vitrine.services.cart import Cart
from vitrine.services.coupon_service import (
    validate_coupon, validate_customer_coupon, list_customer_coupons, coupon_to_dict, preview_discount
)
from vitrine.services.customer_service import get_customer
from vitrine.services.sales_service import finalize_sale, list_sales, get_sale, sale_to_dict
from vitrine.services.sale_delete_service import delete_sale_with_reversal
from vitrine.utils.number_format import parse_decimal
from vitrine.utils.request_data import get_payload, get_date_arg, get_int_arg, require_int

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')

CART_SESSION_KEY = 'cart'


def get_cart() -> Cart:
    """Get cart from the cookie session."""
    return Cart.from_dict(session.get(CART_SESSION_KEY))


def save_cart(cart: Cart) -> None:
    """Save cart to session (Decimals stored as strings)."""
    session[CART_SESSION_KEY] = cart.to_dict()
    session.modified = True


def _cart_response(cart: Cart, status: int = 200, **extra):
    body = cart.summary()
    body.update(extra)
    return jsonify(body), status


def _get_product_or_error(db_session, product_id: int) -> Product:
    product = db_session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError('Produto não encontrado')
    if not product.is_active:
        raise BusinessLogicError(f'O produto "{product.name}" não está ativo')
    return product


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------

@sales_bp.route('/cart', methods=['GET'])
@require_admin
def cart_view():
    return _cart_response(get_cart())


@sales_bp.route('/cart/add', methods=['POST'])
@require_admin
def cart_add():
    """Add one unit of a product to the cart."""
    db_session = get_session()
    product_id = require_int(get_payload(), 'product_id', 'Produto')
    product = _get_product_or_error(db_session, product_id)

    cart = get_cart()
    cart.add(product)
    save_cart(cart)
    current_app.logger.info(f"[SALES] cart_add product_id={product_id} lines={len(cart.items)}")
    return _cart_response(cart)


@sales_bp.route('/cart/quantity', methods=['POST'])
@require_admin
def cart_update_quantity():
    """Shift a line by ``delta`` units; a line reaching zero is removed."""
    payload = get_payload()
    product_id = require_int(payload, 'product_id', 'Produto')
    delta = require_int(payload, 'delta', 'Quantidade')

    cart = get_cart()
    cart.update_quantity(product_id, delta)
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/remove', methods=['POST'])
@require_admin
def cart_remove():
    product_id = require_int(get_payload(), 'product_id', 'Produto')
    cart = get_cart()
    cart.remove(product_id)
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/customer', methods=['POST'])
@require_admin
def cart_set_customer():
    """
    Select (or clear with null) the customer of the sale.

    A coupon applied from the previous customer's list is dropped.
    """
    db_session = get_session()
    payload = get_payload()
    customer_id = get_int_arg('customer_id', payload)

    cart = get_cart()
    cart._ensure_editable()
    if customer_id is not None:
        get_customer(db_session, customer_id)
    if cart.coupon and cart.coupon.get('via_customer') and cart.customer_id != customer_id:
        cart.remove_coupon()
    cart.customer_id = customer_id
    save_cart(cart)

    coupons = []
    if customer_id is not None:
        coupons = [coupon_to_dict(c) for c in list_customer_coupons(db_session, customer_id)]
    return _cart_response(cart, customer_coupons=coupons)


@sales_bp.route('/cart/coupon', methods=['POST'])
@require_admin
def cart_apply_coupon():
    """
    Apply a coupon by typed ``code`` or, for the selected customer, by ``coupon_id``.

    The full gate runs for typed codes; linked coupons only check the minimum purchase.
    """
    db_session = get_session()
    payload = get_payload()
    cart = get_cart()
    cart._ensure_editable()
    if cart.coupon is not None:
        raise BusinessLogicError('Já existe um cupom aplicado. Remova-o antes de aplicar outro.')

    coupon_id = get_int_arg('coupon_id', payload)
    if coupon_id is not None:
        if not cart.customer_id:
            raise BusinessLogicError('Selecione um cliente para usar os cupons dele')
        coupon = validate_customer_coupon(db_session, cart.customer_id, coupon_id, cart.subtotal)
        cart.set_coupon(coupon, via_customer=True)
    else:
        coupon = validate_coupon(db_session, payload.get('code'), cart.subtotal)
        cart.set_coupon(coupon)

    save_cart(cart)
    current_app.logger.info(f"[SALES] Coupon {coupon.code} applied")
    return _cart_response(cart, message=f'Cupom {coupon.code} aplicado: -{preview_discount(coupon, cart.subtotal)}')


@sales_bp.route('/cart/coupon', methods=['DELETE'])
@require_admin
def cart_remove_coupon():
    cart = get_cart()
    cart._ensure_editable()
    cart.remove_coupon()
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/discount', methods=['POST'])
@require_admin
def cart_manual_discount():
    try:
        amount = parse_decimal(get_payload().get('amount'), 'Desconto')
    except ValueError as e:
        raise BusinessLogicError(str(e))
    cart = get_cart()
    cart._ensure_editable()
    cart.set_manual_discount(amount)
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/finalize', methods=['POST'])
@require_admin
def cart_finalize():
    """Persist the cart as a completed sale."""
    from vitrine.blueprints.metrics import sales_completed_total

    cart = get_cart()
    sale = finalize_sale(get_session(), cart)
    save_cart(cart)
    sales_completed_total.labels(with_coupon='yes' if sale.coupon_id else 'no').inc()
    return _cart_response(cart, 201, sale=sale_to_dict(sale))


@sales_bp.route('/cart/reset', methods=['POST'])
@require_admin
def cart_reset():
    """Start a new sale with an empty cart."""
    cart = Cart()
    save_cart(cart)
    return _cart_response(cart)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@sales_bp.route('', methods=['GET'])
@require_admin
def list_sales_view():
    """Sales between ?start= and ?end= (YYYY-MM-DD), default last 30 days; ?q= searches."""
    sales = list_sales(
        get_session(),
        start_date=get_date_arg('start'),
        end_date=get_date_arg('end'),
        search=request.args.get('q'),
        default_days=current_app.config.get('SALES_DEFAULT_RANGE_DAYS', 30),
    )
    return jsonify({'sales': [sale_to_dict(s) for s in sales]})


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_admin
def sale_detail(sale_id):
    return jsonify(sale_to_dict(get_sale(get_session(), sale_id)))


@sales_bp.route('/<int:sale_id>', methods=['DELETE'])
@require_admin
def delete_sale(sale_id):
    """Delete a sale and give its quantities back to stock."""
    result = delete_sale_with_reversal(sale_id, get_session())
    return jsonify(result)
