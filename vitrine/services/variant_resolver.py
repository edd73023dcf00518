"""
Variant resolution engine.

Works on plain dicts so it can run over ORM rows, cached payloads or
request data alike. A variant dict looks like::

    {'id': 7, 'price_adjustment': Decimal('5.00'), 'stock': 3,
     'sku': 'CAM-M-AZ', 'is_active': True,
     'options': [{'id': 2, 'attribute_id': 1, 'attribute_name': 'Tamanho',
                  'attribute_sort_order': 0, 'label': 'M',
                  'image_url': None, 'sort_order': 1}, ...]}

No persistence side effects: selections live only in the resolver.
"""
from decimal import Decimal
from typing import Dict, Optional, Tuple


def _to_decimal(value) -> Decimal:
    if value is None:
        return Decimal('0.00')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _combination_key(option_ids) -> Tuple[int, ...]:
    return tuple(sorted(int(option_id) for option_id in option_ids))


class VariantResolver:
    """Progressive attribute selection over a product's variants."""

    def __init__(self, base_price, variants, base_stock=None, selection: Optional[dict] = None):
        self.base_price = _to_decimal(base_price)
        self.base_stock = base_stock
        self.variants = list(variants)
        self.selection: Dict[int, int] = {}

        self._option_sets = {}
        self._by_combination = {}
        self._attribute_of = {}
        for variant in self.variants:
            option_ids = frozenset(int(option['id']) for option in variant.get('options', ()))
            self._option_sets[variant['id']] = option_ids
            # First variant wins if two share a combination
            self._by_combination.setdefault(_combination_key(option_ids), variant)
            for option in variant.get('options', ()):
                self._attribute_of[int(option['id'])] = int(option['attribute_id'])

        if selection:
            for attribute_id, option_id in selection.items():
                self.select_option(attribute_id, option_id)
        elif len(self.variants) == 1:
            # A single variant is selected up front
            for option in self.variants[0].get('options', ()):
                self.selection[int(option['attribute_id'])] = int(option['id'])

    def select_option(self, attribute_id, option_id) -> Optional[dict]:
        """Set (or clear, with option_id=None) the choice for one attribute."""
        attribute_id = int(attribute_id)
        if option_id is None or option_id == '':
            self.selection.pop(attribute_id, None)
        else:
            self.selection[attribute_id] = int(option_id)
        return self.selected_variant

    @property
    def selected_variant(self) -> Optional[dict]:
        """Variant whose option set is exactly the current selection."""
        if not self.selection:
            return None
        return self._by_combination.get(_combination_key(self.selection.values()))

    @property
    def is_resolved(self) -> bool:
        return self.selected_variant is not None

    def is_option_available(self, attribute_id, option_id) -> bool:
        """
        True if picking this option can still lead to an in-stock variant.

        The attribute's own current choice is ignored so the user can
        switch between its options freely.
        """
        attribute_id = int(attribute_id)
        option_id = int(option_id)
        others = {
            selected for attr, selected in self.selection.items()
            if attr != attribute_id
        }
        for variant in self.variants:
            option_set = self._option_sets[variant['id']]
            if option_id in option_set and others <= option_set and (variant.get('stock') or 0) > 0:
                return True
        return False

    @property
    def effective_price(self) -> Decimal:
        variant = self.selected_variant
        if variant is None:
            return self.base_price
        return (self.base_price + _to_decimal(variant.get('price_adjustment'))).quantize(Decimal('0.01'))

    @property
    def effective_stock(self):
        variant = self.selected_variant
        if variant is None:
            return self.base_stock
        return variant.get('stock') or 0

    @property
    def price_range(self) -> Optional[Tuple[Decimal, Decimal]]:
        """(min, max) of base price plus adjustment across all variants."""
        if not self.variants:
            return None
        prices = [
            (self.base_price + _to_decimal(variant.get('price_adjustment'))).quantize(Decimal('0.01'))
            for variant in self.variants
        ]
        return min(prices), max(prices)

    def grouped_attributes(self) -> list:
        """Attributes present in the variants, each with its distinct options."""
        groups = {}
        for variant in self.variants:
            for option in variant.get('options', ()):
                attribute_id = int(option['attribute_id'])
                group = groups.setdefault(attribute_id, {
                    'id': attribute_id,
                    'name': option.get('attribute_name'),
                    'sort_order': option.get('attribute_sort_order') or 0,
                    'options': {},
                })
                group['options'].setdefault(int(option['id']), {
                    'id': int(option['id']),
                    'label': option.get('label'),
                    'image_url': option.get('image_url'),
                    'sort_order': option.get('sort_order') or 0,
                })

        result = []
        for group in sorted(groups.values(), key=lambda g: (g['sort_order'], g['name'] or '')):
            options = sorted(group['options'].values(), key=lambda o: (o['sort_order'], o['label'] or ''))
            result.append({
                'id': group['id'],
                'name': group['name'],
                'options': options,
            })
        return result

    def availability(self) -> Dict[int, Dict[int, bool]]:
        """Availability flag for every option of every attribute."""
        return {
            group['id']: {
                option['id']: self.is_option_available(group['id'], option['id'])
                for option in group['options']
            }
            for group in self.grouped_attributes()
        }

    def to_dict(self) -> dict:
        """Payload for the storefront variant selector."""
        price_range = self.price_range
        variant = self.selected_variant
        return {
            'attributes': self.grouped_attributes(),
            'variants': self.variants,
            'selection': {str(k): v for k, v in self.selection.items()},
            'selected_variant_id': variant['id'] if variant else None,
            'effective_price': self.effective_price,
            'effective_stock': self.effective_stock,
            'price_range': list(price_range) if price_range else None,
            'availability': {
                str(attr): {str(opt): flag for opt, flag in options.items()}
                for attr, options in self.availability().items()
            },
        }
