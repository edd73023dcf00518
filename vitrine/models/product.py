"""Product model."""
from sqlalchemy import Column, String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId


class Product(Base):
    """Product model."""
    
    __tablename__ = 'products'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    promotional_price = Column(Numeric(10, 2), nullable=True)
    cost_price = Column(Numeric(10, 2), nullable=True)  # Valor pago ao fornecedor
    # NULL stock means the product does not track inventory
    stock = Column(Integer, nullable=True)
    category_id = Column(BigId, ForeignKey('categories.id', ondelete='SET NULL'), nullable=True)
    images = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, server_default='true')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    category = relationship('Category', foreign_keys=[category_id])
    # Cascade delete-orphan: variants live and die with their product
    variants = relationship(
        'ProductVariant',
        back_populates='product',
        cascade='all, delete-orphan',
        order_by='ProductVariant.id'
    )
    
    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"
    
    @property
    def unit_price(self):
        """Price charged at the register: the promotional price whenever one is set."""
        if self.promotional_price is not None:
            return self.promotional_price
        return self.price
    
    @property
    def has_promotion(self):
        """Storefront strikes the list price only when the promotion is actually lower."""
        return self.promotional_price is not None and self.promotional_price < self.price
    
    @property
    def is_out_of_stock(self):
        return self.stock is not None and self.stock <= 0
    
    @property
    def cover_image(self):
        return self.images[0] if self.images else None
