"""Authentication helpers: credential check, admin role lookup, password reset."""
import logging
import secrets
import time
from typing import Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from vitrine.models import AppUser, UserRole, UserRoleGrant
from vitrine.exceptions import BusinessLogicError

logger = logging.getLogger(__name__)

# No 0/O, 1/l/I: the password is read off an email and typed by hand
TEMP_PASSWORD_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789'
TEMP_PASSWORD_LENGTH = 8


def normalize_email(email) -> str:
    return (email or '').strip().lower()


def authenticate(session, email, password) -> Optional[AppUser]:
    """Return the active user matching the credentials, or None."""
    email = normalize_email(email)
    if not email or not password:
        return None
    user = session.query(AppUser).filter(
        func.lower(AppUser.email) == email,
        AppUser.active == True
    ).first()
    if user and user.check_password(password):
        return user
    return None


def _has_role(session, user_id: int, role: UserRole) -> bool:
    return session.query(UserRoleGrant.id).filter(
        UserRoleGrant.user_id == user_id,
        UserRoleGrant.role == role.value
    ).first() is not None


def check_admin_role(session, user_id: int, retries: Optional[int] = None,
                     backoff: Optional[float] = None) -> bool:
    """
    Whether the user holds the admin role.
    
    Lookup errors are retried up to `retries` times, sleeping
    `backoff * attempt` seconds between tries; once retries run out
    the user is treated as non-admin.
    """
    if retries is None:
        retries = current_app.config.get('ADMIN_CHECK_RETRIES', 3)
    if backoff is None:
        backoff = current_app.config.get('ADMIN_CHECK_BACKOFF', 0.3)
    
    attempt = 0
    while True:
        try:
            return _has_role(session, user_id, UserRole.ADMIN)
        except SQLAlchemyError as e:
            session.rollback()
            attempt += 1
            logger.error(f"[AUTH] Error checking admin role (attempt {attempt}): {e}")
            if attempt > retries:
                return False
            time.sleep(backoff * attempt)


def grant_role(session, user: AppUser, role: UserRole) -> None:
    """Add a role to the user unless already present (caller commits)."""
    if not user.has_role(role):
        user.roles.append(UserRoleGrant(role=role.value))


def create_or_update_admin(session, email, password, full_name=None) -> AppUser:
    """Create the user if needed, set the password and grant admin."""
    email = normalize_email(email)
    if not email or not password:
        raise BusinessLogicError('Email e senha são obrigatórios')
    if len(password) < 6:
        raise BusinessLogicError('A senha deve ter pelo menos 6 caracteres')
    
    try:
        user = session.query(AppUser).filter(func.lower(AppUser.email) == email).first()
        if not user:
            user = AppUser(email=email, full_name=full_name, active=True)
            session.add(user)
        elif full_name:
            user.full_name = full_name
        user.set_password(password)
        grant_role(session, user, UserRole.ADMIN)
        session.commit()
        logger.info(f"[AUTH] Admin user ready: {email}")
        return user
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao criar administrador: {str(e)}')


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    return ''.join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


def reset_password(session, email) -> Optional[str]:
    """
    Replace the user's password with a temporary one.
    
    Returns:
        The temporary password, or None when no user has that email
        (callers answer success either way so emails cannot be probed).
    """
    email = normalize_email(email)
    if not email:
        raise BusinessLogicError('Email é obrigatório')
    
    user = session.query(AppUser).filter(func.lower(AppUser.email) == email).first()
    if not user:
        logger.info("[AUTH] Password reset for unknown email, answering success")
        return None
    
    temp_password = generate_temp_password()
    try:
        user.set_password(temp_password)
        session.commit()
    except Exception as e:
        session.rollback()
        raise Exception(f'Não foi possível redefinir a senha: {str(e)}')
    
    from vitrine.services.email_service import send_temporary_password_email
    from vitrine.services.settings_service import get_store_name
    send_temporary_password_email(user.email, temp_password, get_store_name(session))
    return temp_password
