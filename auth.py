import logging
from typing import FrozenSet, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from database import Database
from errors import (
    Forbidden,
    InactiveUser,
    InvalidToken,
    MissingCredential,
    RoleMismatch,
    ScopeMismatch,
    UnknownRole,
    UserNotFound,
)
from models import ROLE_SCOPES, SCOPE_FIELDS, Principal, Role
from security import verify_password
from tokens import ACCESS, TokenClaims, TokenService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def authenticate_user(db: Database, email: str, password: str) -> Optional[dict]:
    """Return the active user whose password matches, otherwise None"""
    user = db.get_user_by_email(email)
    if user is None or not user["is_active"]:
        return None
    if not verify_password(password, user["password_hash"]):
        return None
    return user


def parse_role(raw: str) -> Role:
    try:
        return Role(raw)
    except ValueError:
        raise UnknownRole(f"role {raw!r} is not recognised") from None


def load_principal(db: Database, user_id: int, role: Role) -> Principal:
    """Build a principal for `user_id` acting as `role` from stored records"""
    user = db.get_user_by_id(user_id)
    if user is None:
        raise UserNotFound(f"user {user_id} does not exist")
    if not user["is_active"]:
        raise InactiveUser(f"user {user_id} is deactivated")
    if user["role"] != role.value:
        raise RoleMismatch(f"user {user_id} now has role {user['role']!r}")

    scope = {"hospital_id": None, "pharmacy_id": None, "region": None}
    kind = ROLE_SCOPES.get(role)
    if kind is not None:
        value = db.get_profile_scope(user["id"], role.value)
        if value is None:
            raise ScopeMismatch(f"{role.value} {user['id']} has no {kind.value} assignment")
        scope[SCOPE_FIELDS[kind]] = value

    return Principal(id=user["id"], role=role, is_active=True, **scope)


def resolve_principal(claims: TokenClaims, db: Database) -> Principal:
    """Rebuild the caller's identity and tenant scope from storage.

    Only the user id and role are taken from the token; active status and
    scope are read fresh so deactivation or reassignment applies on the
    next request.  A scope claim that disagrees with storage is rejected.
    """
    role = parse_role(claims.role)
    principal = load_principal(db, claims.user_id, role)
    for field in SCOPE_FIELDS.values():
        claimed = getattr(claims, field)
        if claimed is not None and claimed != getattr(principal, field):
            raise ScopeMismatch(
                f"token {field}={claimed!r} but profile has {getattr(principal, field)!r}"
            )
    return principal


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """Read and verify the bearer access token"""
    if credentials is None or not credentials.credentials:
        raise MissingCredential()
    claims = tokens.verify(credentials.credentials)
    if claims.type != ACCESS:
        raise InvalidToken()
    return claims


def get_current_principal(
    request: Request,
    claims: TokenClaims = Depends(get_token_claims),
    db: Database = Depends(get_db),
) -> Principal:
    """Get the resolved principal for this request"""
    principal = resolve_principal(claims, db)
    request.state.principal = principal
    return principal


def authorize(principal: Principal, allowed_roles: FrozenSet[Role]) -> Principal:
    """Admit the principal iff its role is listed; no role implies another"""
    if principal.role not in allowed_roles:
        logger.info("Role %s refused (allowed: %s)", principal.role.value,
                    sorted(r.value for r in allowed_roles))
        raise Forbidden()
    return principal


def require_roles(*roles: Role):
    """Dependency that admits only the listed roles"""
    allowed = frozenset(roles)

    def check_roles(principal: Principal = Depends(get_current_principal)) -> Principal:
        return authorize(principal, allowed)

    check_roles.allowed_roles = allowed
    return check_roles
