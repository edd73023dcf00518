"""Store branding settings and catalog banners."""
from sqlalchemy import Column, String, Boolean, Integer, DateTime
from sqlalchemy.sql import func
from vitrine.database import Base, BigId


class StoreSettings(Base):
    """Single-row store configuration."""
    
    __tablename__ = 'store_settings'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    store_name = Column(String, nullable=False, default='Minha Loja')
    logo_url = Column(String, nullable=True)
    primary_color = Column(String(20), nullable=True, default='#4F46E5')
    secondary_color = Column(String(20), nullable=True, default='#F59E0B')
    whatsapp_number = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<StoreSettings(id={self.id}, store_name='{self.store_name}')>"


class Banner(Base):
    """Catalog hero banner."""
    
    __tablename__ = 'banners'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    image_url = Column(String, nullable=False)
    title = Column(String, nullable=True)
    link = Column(String, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0, server_default='0')
    is_active = Column(Boolean, nullable=False, default=True, server_default='true')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<Banner(id={self.id}, title='{self.title}', active={self.is_active})>"
