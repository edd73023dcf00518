"""Customer model."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId


class Customer(Base):
    """Customer (cliente)."""
    
    __tablename__ = 'customers'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    sales = relationship('Sale', back_populates='customer')
    coupon_links = relationship('CustomerCoupon', back_populates='customer', cascade='all, delete-orphan')
    
    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
