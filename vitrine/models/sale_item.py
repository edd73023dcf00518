"""Sale item model and the stock decrement that follows every insert."""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, event, case
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId
from vitrine.models.product import Product


class SaleItem(Base):
    """Sale item: immutable snapshot of product name and price at sale time."""
    
    __tablename__ = 'sale_items'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    sale_id = Column(BigId, ForeignKey('sales.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(BigId, ForeignKey('products.id', ondelete='SET NULL'), nullable=True)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    # Relationships
    sale = relationship('Sale', back_populates='items')
    
    def __repr__(self):
        return f"<SaleItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"


@event.listens_for(SaleItem, 'after_insert')
def reduce_stock_on_sale(mapper, connection, target):
    """Decrement tracked stock for the sold product, never below zero."""
    if target.product_id is None:
        return
    
    products = Product.__table__
    remaining = products.c.stock - target.quantity
    connection.execute(
        products.update()
        .where(products.c.id == target.product_id, products.c.stock.isnot(None))
        .values(stock=case((remaining < 0, 0), else_=remaining))
    )
