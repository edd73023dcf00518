"""Coupon and customer-coupon link models."""
from sqlalchemy import (
    Column, String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId
import enum


class DiscountType(str, enum.Enum):
    """How a coupon's discount_value is interpreted."""
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class Coupon(Base):
    """Discount coupon (cupom)."""
    
    __tablename__ = 'coupons'
    __table_args__ = (
        CheckConstraint("discount_type IN ('percentage', 'fixed')", name='ck_coupon_discount_type'),
    )
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = Column(Numeric(10, 2), nullable=False, default=0)
    min_purchase = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0, server_default='0')
    valid_from = Column(DateTime, nullable=False, server_default=func.now())
    valid_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default='true')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    customer_links = relationship('CustomerCoupon', back_populates='coupon', cascade='all, delete-orphan')
    
    def __repr__(self):
        return f"<Coupon(id={self.id}, code='{self.code}', type={self.discount_type}, value={self.discount_value})>"


class CustomerCoupon(Base):
    """Coupon explicitly granted to one customer."""
    
    __tablename__ = 'customer_coupons'
    __table_args__ = (
        UniqueConstraint('customer_id', 'coupon_id', name='uq_customer_coupon'),
    )
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    customer_id = Column(BigId, ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)
    coupon_id = Column(BigId, ForeignKey('coupons.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    customer = relationship('Customer', back_populates='coupon_links')
    coupon = relationship('Coupon', back_populates='customer_links')
    
    def __repr__(self):
        return f"<CustomerCoupon(customer_id={self.customer_id}, coupon_id={self.coupon_id})>"
