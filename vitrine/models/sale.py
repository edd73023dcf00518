"""Sale model."""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId
import enum


class SaleStatus(str, enum.Enum):
    """Sale status enum."""
    COMPLETED = 'completed'


class Sale(Base):
    """Sale (venda finalizada)."""
    
    __tablename__ = 'sales'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    customer_id = Column(BigId, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    # Discount amounts are snapshotted, so the sale survives coupon deletion
    coupon_id = Column(BigId, ForeignKey('coupons.id', ondelete='SET NULL'), nullable=True)
    coupon_discount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    manual_discount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    total = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    status = Column(String(20), nullable=False, default=SaleStatus.COMPLETED.value)
    # Cart key; unique so the same cart can only become one sale
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    customer = relationship('Customer', back_populates='sales')
    coupon = relationship('Coupon')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan', order_by='SaleItem.id')
    
    @property
    def total_discount(self):
        return (self.coupon_discount or 0) + (self.manual_discount or 0)

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, status={self.status})>"
