"""Models package."""
from marketportal.models.user import User, UserStatus
from marketportal.models.role import Role
from marketportal.models.market import Market, market_managers
from marketportal.models.role_assignment import RoleAssignment, RoleDocument, IdentityDocument
from marketportal.models.user_session import UserSession
from marketportal.models.notification import Notification
from marketportal.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserStatus",
    "Role",
    "Market",
    "market_managers",
    "RoleAssignment",
    "RoleDocument",
    "IdentityDocument",
    "UserSession",
    "Notification",
    "AuditLog",
]
