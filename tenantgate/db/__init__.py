"""Database module."""

from tenantgate.db.database import SessionLocal, engine, get_db, init_db
from tenantgate.db.models import (
    AuditLog,
    Base,
    Company,
    CompanyMember,
    EmailVerificationChallenge,
    Invitation,
    Project,
    User,
    Workspace,
    WorkspaceMember,
)

__all__ = [
    "SessionLocal",
    "engine",
    "get_db",
    "init_db",
    "Base",
    "AuditLog",
    "Company",
    "CompanyMember",
    "EmailVerificationChallenge",
    "Invitation",
    "Project",
    "User",
    "Workspace",
    "WorkspaceMember",
]
