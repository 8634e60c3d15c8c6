import logging
import sqlite3

from fastapi import APIRouter, Depends

from auth import (
    authenticate_user,
    get_current_principal,
    get_db,
    get_token_service,
    load_principal,
    parse_role,
    resolve_principal,
)
from config import VALID_REGIONS
from database import Database
from errors import DuplicateRecord, InvalidCredentials, InvalidToken, SessionError, ValidationError
from models import LoginRequest, Principal, RefreshRequest, RegisterPatientRequest, Role
from security import hash_password
from tokens import REFRESH, TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def user_payload(user: dict, principal: Principal) -> dict:
    return {
        "id": user["id"],
        "firstName": user["first_name"],
        "lastName": user["last_name"],
        "email": user["email"],
        "role": user["role"],
        "tenantScope": principal.tenant_scope,
    }


@router.post("/login")
def login(
    request: LoginRequest,
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Authenticate user and return access and refresh tokens"""
    user = authenticate_user(db, request.email, request.password)
    if not user:
        logger.info("Failed login for %s", request.email)
        raise InvalidCredentials()

    try:
        principal = load_principal(db, user["id"], parse_role(user["role"]))
    except SessionError as exc:
        logger.warning("User %s cannot log in: %s", user["id"], exc)
        raise InvalidCredentials()

    db.record_login(user["id"])
    access_token, refresh_token = tokens.issue_pair(principal.token_claims())
    logger.info("User %s logged in as %s", user["id"], principal.role.value)

    return {
        "success": True,
        "data": {
            "user": user_payload(user, principal),
            "accessToken": access_token,
            "refreshToken": refresh_token,
        },
    }


@router.post("/refresh")
def refresh(
    request: RefreshRequest,
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange a refresh token for a new access token"""
    if not request.refreshToken:
        raise InvalidToken("Refresh token required")

    try:
        claims = tokens.verify(request.refreshToken)
        if claims.type != REFRESH:
            raise InvalidToken()
        principal = resolve_principal(claims, db)
    except (InvalidToken, SessionError) as exc:
        logger.info("Refresh refused: %s", type(exc).__name__)
        raise InvalidToken("Invalid refresh token")

    return {"success": True, "data": {"accessToken": tokens.issue(principal.token_claims())}}


@router.post("/logout")
def logout(principal: Principal = Depends(get_current_principal)):
    """Tokens are not revoked server-side; they lapse at expiry"""
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(principal: Principal = Depends(get_current_principal), db: Database = Depends(get_db)):
    """Get current user info"""
    user = db.get_user_by_id(principal.id)
    return {"success": True, "data": user_payload(user, principal)}


@router.post("/register/patient", status_code=201)
def register_patient(request: RegisterPatientRequest, db: Database = Depends(get_db)):
    """Patient self-registration"""
    region = request.region.strip().lower()
    if region not in VALID_REGIONS:
        raise ValidationError(f"Invalid region. Must be one of: {VALID_REGIONS}")
    if db.get_user_by_email(request.email):
        raise DuplicateRecord("User with this email or phone already exists")

    try:
        user_id = db.create_user(
            {
                "email": request.email,
                "phone": request.phone,
                "password_hash": hash_password(request.password),
                "first_name": request.firstName,
                "last_name": request.lastName,
                "role": Role.PATIENT.value,
            },
            {
                "date_of_birth": request.dateOfBirth,
                "gender": request.gender,
                "region": region,
                "city": request.city,
                "blood_type": request.bloodType,
            },
        )
    except sqlite3.IntegrityError:
        raise DuplicateRecord("User with this email or phone already exists")

    logger.info("Registered patient user %s", user_id)
    return {
        "success": True,
        "data": {
            "message": "Patient registered successfully",
            "userId": user_id,
            "patientId": db.get_patient_id(user_id),
        },
    }
