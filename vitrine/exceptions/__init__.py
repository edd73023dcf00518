"""Custom exceptions for the Vitrine application."""

class VitrineError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="Ocorreu um erro interno", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(VitrineError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(VitrineError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Registro não encontrado", payload=None):
        super().__init__(message, 404, payload)

class CouponError(BusinessLogicError):
    """Raised when a coupon fails the redemption gate."""
    def __init__(self, message, reason):
        super().__init__(message, payload={'reason': reason})
        self.reason = reason

class UnauthorizedError(VitrineError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Acesso não autorizado"):
        super().__init__(message, 403)

class AuthenticationRequired(VitrineError):
    """Raised when the request carries no logged-in user."""
    def __init__(self, message="Faça login para continuar"):
        super().__init__(message, 401)

class AIServiceError(VitrineError):
    """AI gateway failure with a message meant for the end user."""
    def __init__(self, message, status_code=502, upstream_status=None):
        super().__init__(message, status_code, {'upstream_status': upstream_status})
        self.upstream_status = upstream_status
