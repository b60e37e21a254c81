"""Authentication module: CAS login, session cookies and access control."""

from .cas import CasClient, CasIdentity, CasAuthenticationError, CasProviderError
from .deps import CurrentSession, AdminUser, require_session, require_admin
from .service import AuthService, SessionContext

__all__ = [
    "CasClient",
    "CasIdentity",
    "CasAuthenticationError",
    "CasProviderError",
    "CurrentSession",
    "AdminUser",
    "require_session",
    "require_admin",
    "AuthService",
    "SessionContext",
]
