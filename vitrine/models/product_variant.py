"""Product variant model (one option per attribute axis)."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId


class ProductVariantOption(Base):
    """Link between a variant and one of its options."""
    
    __tablename__ = 'product_variant_options'
    __table_args__ = (
        UniqueConstraint('variant_id', 'option_id', name='uq_variant_option'),
    )
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    variant_id = Column(BigId, ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=False)
    option_id = Column(BigId, ForeignKey('attribute_options.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ProductVariant(Base):
    """Purchasable combination with its own price adjustment and stock."""
    
    __tablename__ = 'product_variants'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    product_id = Column(BigId, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    sku = Column(String, nullable=True)
    price_adjustment = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    is_active = Column(Boolean, nullable=False, default=True, server_default='true')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    product = relationship('Product', back_populates='variants')
    options = relationship('AttributeOption', secondary='product_variant_options')
    
    @property
    def option_ids(self):
        return frozenset(option.id for option in self.options)
    
    def __repr__(self):
        return f"<ProductVariant(id={self.id}, product_id={self.product_id}, stock={self.stock})>"
