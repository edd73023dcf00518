"""Product attribute (axis of variation) and its options."""
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId


class ProductAttribute(Base):
    """Attribute such as Tamanho, Cor or Material."""
    
    __tablename__ = 'product_attributes'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0, server_default='0')
    is_active = Column(Boolean, nullable=False, default=True, server_default='true')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    options = relationship(
        'AttributeOption',
        back_populates='attribute',
        cascade='all, delete-orphan',
        order_by='AttributeOption.sort_order'
    )
    
    def __repr__(self):
        return f"<ProductAttribute(id={self.id}, name='{self.name}')>"


class AttributeOption(Base):
    """Concrete value of an attribute (P, M, G for Tamanho)."""
    
    __tablename__ = 'attribute_options'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    attribute_id = Column(BigId, ForeignKey('product_attributes.id', ondelete='CASCADE'), nullable=False)
    label = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    attribute = relationship('ProductAttribute', back_populates='options')
    
    def __repr__(self):
        return f"<AttributeOption(id={self.id}, attribute_id={self.attribute_id}, label='{self.label}')>"
