"""
Point-of-sale cart.

The cart lives in the Flask session between requests as a plain dict
(`Cart.to_dict` / `Cart.from_dict`). All money math uses Decimal.

Lifecycle: EMPTY -> BUILDING -> FINALIZING -> COMPLETED.
Each cart carries an idempotency key, created with its first line and
stored on the resulting Sale, so a replayed finalize is refused.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import enum
import uuid

from vitrine.models import DiscountType
from vitrine.exceptions import BusinessLogicError

CENTS = Decimal('0.01')


class CartState(str, enum.Enum):
    EMPTY = 'empty'
    BUILDING = 'building'
    FINALIZING = 'finalizing'
    COMPLETED = 'completed'


def to_money(value) -> Decimal:
    """Coerce to a 2-decimal Decimal."""
    if value is None or value == '':
        return Decimal('0.00')
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def unit_price_for(product) -> Decimal:
    """Promotional price wins whenever one is set."""
    if isinstance(product, dict):
        promotional = product.get('promotional_price')
        price = product.get('price')
    else:
        promotional = product.promotional_price
        price = product.price
    return to_money(promotional if promotional is not None else price)


def compute_coupon_discount(discount_type: str, discount_value, subtotal) -> Decimal:
    """Percentage is rounded to cents; fixed is taken as is."""
    subtotal = to_money(subtotal)
    value = to_money(discount_value)
    if discount_type == DiscountType.PERCENTAGE.value:
        return (subtotal * value / Decimal('100')).quantize(CENTS, rounding=ROUND_HALF_UP)
    return value


class Cart:
    """Lines keyed by product id, plus customer, coupon and manual discount."""

    def __init__(self):
        self.items = []
        self.customer_id: Optional[int] = None
        self.coupon: Optional[dict] = None
        self.manual_discount = Decimal('0.00')
        self._phase: Optional[CartState] = None
        self.idempotency_key: Optional[str] = None

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> CartState:
        if self._phase is not None:
            return self._phase
        return CartState.BUILDING if self.items else CartState.EMPTY

    def begin_finalize(self):
        if not self.items:
            raise BusinessLogicError('O carrinho está vazio')
        if self._phase is not None:
            raise BusinessLogicError('Esta venda já está sendo finalizada')
        if not self.idempotency_key:
            self.idempotency_key = uuid.uuid4().hex
        self._phase = CartState.FINALIZING

    def abort_finalize(self):
        """Back to BUILDING after a failed finalization."""
        if self._phase == CartState.FINALIZING:
            self._phase = None

    def mark_completed(self):
        self._phase = CartState.COMPLETED

    # -- lines ---------------------------------------------------------------

    def _find(self, product_id) -> Optional[dict]:
        product_id = int(product_id)
        for item in self.items:
            if item['product_id'] == product_id:
                return item
        return None

    def add(self, product) -> dict:
        """Add one unit; an existing line just grows by one."""
        self._ensure_editable()
        if not self.idempotency_key:
            self.idempotency_key = uuid.uuid4().hex
        existing = self._find(product.id)
        if existing:
            existing['quantity'] += 1
            return existing

        line = {
            'product_id': product.id,
            'name': product.name,
            'unit_price': unit_price_for(product),
            'quantity': 1,
            'image': product.cover_image,
        }
        self.items.append(line)
        return line

    def update_quantity(self, product_id, delta: int):
        """Shift a line's quantity; at zero or below the line goes away."""
        self._ensure_editable()
        line = self._find(product_id)
        if not line:
            return
        new_qty = line['quantity'] + int(delta)
        if new_qty <= 0:
            self.remove(product_id)
        else:
            line['quantity'] = new_qty

    def remove(self, product_id):
        self._ensure_editable()
        product_id = int(product_id)
        self.items = [item for item in self.items if item['product_id'] != product_id]

    def clear(self):
        self.__init__()

    def _ensure_editable(self):
        if self._phase is not None:
            raise BusinessLogicError('A venda já foi finalizada; inicie uma nova venda')

    # -- totals --------------------------------------------------------------

    @property
    def subtotal(self) -> Decimal:
        total = sum(
            (to_money(item['unit_price']) * item['quantity'] for item in self.items),
            Decimal('0.00')
        )
        return total.quantize(CENTS)

    @property
    def coupon_discount(self) -> Decimal:
        if not self.coupon:
            return Decimal('0.00')
        return compute_coupon_discount(
            self.coupon['discount_type'], self.coupon['discount_value'], self.subtotal
        )

    @property
    def total(self) -> Decimal:
        total = self.subtotal - self.coupon_discount - to_money(self.manual_discount)
        return max(Decimal('0.00'), total).quantize(CENTS)

    # -- discounts -----------------------------------------------------------

    def set_coupon(self, coupon, via_customer: bool = False):
        """Attach an already validated coupon; only one at a time."""
        if self.coupon is not None:
            raise BusinessLogicError('Já existe um cupom aplicado. Remova-o antes de aplicar outro.')
        self.coupon = {
            'id': coupon.id,
            'code': coupon.code,
            'discount_type': coupon.discount_type,
            'discount_value': to_money(coupon.discount_value),
            'min_purchase': to_money(coupon.min_purchase),
            'via_customer': via_customer,
        }

    def remove_coupon(self):
        self.coupon = None

    def set_manual_discount(self, amount):
        amount = to_money(amount)
        if amount < 0:
            raise BusinessLogicError('O desconto não pode ser negativo')
        self.manual_discount = amount

    # -- session (de)serialization --------------------------------------------

    def to_dict(self) -> dict:
        return {
            'items': [
                dict(item, unit_price=str(to_money(item['unit_price'])))
                for item in self.items
            ],
            'customer_id': self.customer_id,
            'coupon': dict(
                self.coupon,
                discount_value=str(self.coupon['discount_value']),
                min_purchase=str(self.coupon['min_purchase'])
            ) if self.coupon else None,
            'manual_discount': str(to_money(self.manual_discount)),
            'phase': self._phase.value if self._phase else None,
            'idempotency_key': self.idempotency_key,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'Cart':
        cart = cls()
        if not data:
            return cart
        cart.items = [
            dict(item, product_id=int(item['product_id']), quantity=int(item['quantity']),
                 unit_price=to_money(item['unit_price']))
            for item in data.get('items', [])
        ]
        cart.customer_id = data.get('customer_id')
        coupon = data.get('coupon')
        if coupon:
            cart.coupon = dict(
                coupon,
                discount_value=to_money(coupon['discount_value']),
                min_purchase=to_money(coupon['min_purchase'])
            )
        cart.manual_discount = to_money(data.get('manual_discount'))
        phase = data.get('phase')
        cart._phase = CartState(phase) if phase else None
        cart.idempotency_key = data.get('idempotency_key')
        return cart

    def summary(self) -> dict:
        """Cart as returned to the register UI."""
        return {
            'state': self.state.value,
            'items': [
                dict(item, line_total=(to_money(item['unit_price']) * item['quantity']).quantize(CENTS))
                for item in self.items
            ],
            'customer_id': self.customer_id,
            'coupon': self.coupon,
            'subtotal': self.subtotal,
            'coupon_discount': self.coupon_discount,
            'manual_discount': to_money(self.manual_discount),
            'total': self.total,
        }
