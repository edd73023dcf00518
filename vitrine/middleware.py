"""Middleware for authentication and admin context."""
from functools import wraps
from typing import Optional

from flask import session, g, current_app

from vitrine.database import get_session
from vitrine.exceptions import AuthenticationRequired, UnauthorizedError
from vitrine.models import AppUser


class SessionContext:
    """Who is calling: the logged-in user (or None) and whether they are an admin."""

    def __init__(self, user: Optional[AppUser] = None, is_admin: bool = False):
        self.user = user
        self.is_admin = is_admin

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[int]:
        return self.user.id if self.user else None

    def to_dict(self) -> dict:
        if not self.user:
            return {'authenticated': False, 'user': None, 'is_admin': False}
        return {
            'authenticated': True,
            'user': {
                'id': self.user.id,
                'email': self.user.email,
                'full_name': self.user.full_name,
            },
            'is_admin': self.is_admin,
        }


def load_session_context():
    """
    Build the SessionContext for this request and store it in g.session_ctx.

    Called before each request. Handlers read the context from g and pass
    it on; services never look at the cookie session themselves.
    """
    g.session_ctx = SessionContext()

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        db_session = get_session()
        if not db_session:
            return

        user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
        if not user:
            session.pop('user_id', None)
            return

        from vitrine.services.auth_service import check_admin_role
        g.session_ctx = SessionContext(user, check_admin_role(db_session, user.id))
    except Exception as e:
        # Avoid crashing the whole app if context loading fails
        current_app.logger.error(f"Error in load_session_context: {e}")


def _context() -> SessionContext:
    return getattr(g, 'session_ctx', None) or SessionContext()


def require_login(f):
    """
    Decorator: Require user to be logged in.

    Answers 401 JSON when there is no user in the session.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _context().is_authenticated:
            raise AuthenticationRequired()
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """
    Decorator: Require the admin role.

    401 when logged out, 403 when logged in without the admin role.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = _context()
        if not ctx.is_authenticated:
            raise AuthenticationRequired()
        if not ctx.is_admin:
            raise UnauthorizedError('Acesso restrito a administradores')
        return f(*args, **kwargs)
    return decorated_function
