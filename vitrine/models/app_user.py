"""AppUser model - admin panel users with email/password authentication."""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from vitrine.database import Base, BigId
import enum


class UserRole(str, enum.Enum):
    """Role granted to a user."""
    ADMIN = 'admin'
    USER = 'user'


class AppUser(Base):
    """Panel user."""
    
    __tablename__ = 'app_users'
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    roles = relationship('UserRoleGrant', back_populates='user', cascade='all, delete-orphan')
    
    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')
    
    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)
    
    def has_role(self, role):
        value = role.value if isinstance(role, UserRole) else role
        return any(grant.role == value for grant in self.roles)
    
    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}')>"


class UserRoleGrant(Base):
    """Role row (user_roles); one per (user, role)."""
    
    __tablename__ = 'user_roles'
    __table_args__ = (
        UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )
    
    id = Column(BigId, primary_key=True, autoincrement=True)
    user_id = Column(BigId, ForeignKey('app_users.id', ondelete='CASCADE'), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    user = relationship('AppUser', back_populates='roles')
    
    def __repr__(self):
        return f"<UserRoleGrant(user_id={self.user_id}, role='{self.role}')>"
