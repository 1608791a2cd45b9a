from .request_id_middleware import RequestIDMiddleware
from .security_middleware import DevSecurityMiddleware, ProdSecurityMiddleware
from .auth_middleware import AuthMiddleware

__all__ = [
    "RequestIDMiddleware",
    "DevSecurityMiddleware",
    "ProdSecurityMiddleware",
    "AuthMiddleware",
]
