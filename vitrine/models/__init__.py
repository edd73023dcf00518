"""Models package - exports all SQLAlchemy models."""
# Auth
from vitrine.models.app_user import AppUser, UserRole, UserRoleGrant

# Catalog
from vitrine.models.category import Category
from vitrine.models.product import Product
from vitrine.models.attribute import ProductAttribute, AttributeOption
from vitrine.models.product_variant import ProductVariant, ProductVariantOption

# Sales
from vitrine.models.customer import Customer
from vitrine.models.coupon import Coupon, CustomerCoupon, DiscountType
from vitrine.models.sale import Sale, SaleStatus
from vitrine.models.sale_item import SaleItem

# Storefront
from vitrine.models.store_settings import StoreSettings, Banner

__all__ = [
    'AppUser', 'UserRole', 'UserRoleGrant',
    'Category', 'Product', 'ProductAttribute', 'AttributeOption',
    'ProductVariant', 'ProductVariantOption',
    'Customer', 'Coupon', 'CustomerCoupon', 'DiscountType',
    'Sale', 'SaleStatus', 'SaleItem',
    'StoreSettings', 'Banner',
]
