"""
Role-Based Access Control

Resolves the caller from a bearer JWT and gates HR integration
endpoints by permission and company.
"""

import logging
from enum import Enum

import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel, Field

from backend.services.auth import decode_token

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Directory roles."""
    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    RECRUITER = "recruiter"
    VIEWER = "viewer"


class Permission(str, Enum):
    HR_INTEGRATION_READ = "hr_integration:read"
    HR_INTEGRATION_WRITE = "hr_integration:write"
    HR_INTEGRATION_SYNC = "hr_integration:sync"


ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.SUPER_ADMIN: set(Permission),
    Role.COMPANY_ADMIN: set(Permission),
    Role.RECRUITER: {Permission.HR_INTEGRATION_READ, Permission.HR_INTEGRATION_SYNC},
    Role.VIEWER: {Permission.HR_INTEGRATION_READ},
}


class CurrentUser(BaseModel):
    """Authenticated caller context."""
    id: str
    email: str
    company_id: str
    role: Role
    permissions: set[Permission] = Field(default_factory=set)

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions

    def can_access_company(self, company_id: str) -> bool:
        return self.role == Role.SUPER_ADMIN or self.company_id == company_id


async def get_current_user(request: Request) -> CurrentUser:
    """Extract the caller from the Authorization bearer token."""
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    token = auth_header.split(" ", 1)[1]
    return decode_access_token(token)


def decode_access_token(token: str) -> CurrentUser:
    try:
        payload = decode_token(token)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")

    try:
        role = Role(payload.get("role", Role.VIEWER.value))
        return CurrentUser(
            id=str(payload["sub"]),
            email=payload.get("email", ""),
            company_id=str(payload["company_id"]),
            role=role,
            permissions=ROLE_PERMISSIONS.get(role, set()),
        )
    except (KeyError, ValueError) as e:
        logger.warning(f"Rejected token with malformed claims: {e}")
        raise HTTPException(status_code=401, detail="Invalid token claims")


def require_permission(*permissions: Permission):
    """Dependency that checks for specific permissions."""

    async def check(user: CurrentUser = Depends(get_current_user)):
        for perm in permissions:
            if not user.has_permission(perm):
                raise HTTPException(
                    status_code=403,
                    detail=f"Missing permission: {perm.value}",
                )
        return user

    return check


def ensure_company_access(user: CurrentUser, company_id: str) -> None:
    if not user.can_access_company(company_id):
        raise HTTPException(status_code=403, detail="Access denied to this company")
