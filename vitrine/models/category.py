"""Category model."""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from vitrine.database import Base, BigId


class Category(Base):
    """Product category (self-referencing hierarchy)."""
    
    __tablename__ = 'categories'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    # Children are never cascaded: deleting a parent with children is rejected
    parent_id = Column(BigId, ForeignKey('categories.id'), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    parent = relationship('Category', remote_side=[id], backref='children')
    
    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}', parent_id={self.parent_id})>"
