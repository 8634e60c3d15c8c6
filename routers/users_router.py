import logging
import sqlite3

from fastapi import APIRouter, Depends

from auth import get_db, require_roles
from config import VALID_REGIONS
from database import Database
from errors import DuplicateRecord, Forbidden, NotFound, ValidationError
from models import ROLE_SCOPES, Principal, Role, ScopeKind, StaffCreate, StatusUpdate
from security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["User Management"])

# Roles each provisioning role may create
CREATABLE_ROLES = {
    Role.HOSPITAL_ADMIN: {Role.DOCTOR, Role.LAB_TECH},
    Role.SUPER_ADMIN: {
        Role.DOCTOR,
        Role.LAB_TECH,
        Role.PHARMACIST,
        Role.HOSPITAL_ADMIN,
        Role.REGION_ADMIN,
        Role.MOH_ADMIN,
    },
    Role.MOH_ADMIN: {
        Role.DOCTOR,
        Role.LAB_TECH,
        Role.PHARMACIST,
        Role.HOSPITAL_ADMIN,
        Role.REGION_ADMIN,
    },
}


def build_profile(user_data: StaffCreate, db: Database) -> dict:
    """Validate the scope named for a staff role and return its profile row"""
    kind = ROLE_SCOPES.get(user_data.role)

    if kind is ScopeKind.HOSPITAL:
        if user_data.hospitalId is None or db.get_hospital(user_data.hospitalId) is None:
            raise ValidationError("A valid hospitalId is required for this role")
        profile = {"hospital_id": user_data.hospitalId}
        if user_data.role in (Role.DOCTOR, Role.LAB_TECH):
            profile["license_number"] = user_data.licenseNumber
        if user_data.role is Role.DOCTOR:
            profile["specialization"] = user_data.specialization
        return profile

    if kind is ScopeKind.PHARMACY:
        if user_data.pharmacyId is None or db.get_pharmacy(user_data.pharmacyId) is None:
            raise ValidationError("A valid pharmacyId is required for this role")
        return {"pharmacy_id": user_data.pharmacyId, "license_number": user_data.licenseNumber}

    if kind is ScopeKind.REGION:
        region = (user_data.region or "").strip().lower()
        if region not in VALID_REGIONS:
            raise ValidationError(f"Invalid region. Must be one of: {VALID_REGIONS}")
        return {"region": region}

    return None


@router.post("", status_code=201)
def create_staff_account(
    user_data: StaffCreate,
    current_user: Principal = Depends(
        require_roles(Role.HOSPITAL_ADMIN, Role.SUPER_ADMIN, Role.MOH_ADMIN)
    ),
    db: Database = Depends(get_db),
):
    """Create a staff account together with its role profile"""
    if user_data.role not in CREATABLE_ROLES[current_user.role]:
        raise Forbidden()

    # A hospital admin only provisions inside its own hospital
    if current_user.role is Role.HOSPITAL_ADMIN:
        if user_data.hospitalId is None:
            user_data = user_data.model_copy(update={"hospitalId": current_user.hospital_id})
        elif user_data.hospitalId != current_user.hospital_id:
            raise Forbidden()

    profile = build_profile(user_data, db)

    try:
        new_id = db.create_user(
            {
                "email": user_data.email,
                "phone": user_data.phone,
                "password_hash": hash_password(user_data.password),
                "first_name": user_data.firstName,
                "last_name": user_data.lastName,
                "role": user_data.role.value,
            },
            profile,
        )
    except sqlite3.IntegrityError:
        raise DuplicateRecord("User with this email, phone or license number already exists")

    logger.info("User %s created %s account %s", current_user.id, user_data.role.value, new_id)
    return {
        "success": True,
        "data": {
            "id": new_id,
            "email": user_data.email,
            "role": user_data.role.value,
            "hospitalId": user_data.hospitalId if profile and "hospital_id" in profile else None,
            "pharmacyId": user_data.pharmacyId if profile and "pharmacy_id" in profile else None,
            "region": profile.get("region") if profile else None,
        },
    }


@router.patch("/{user_id}/status")
def update_user_status(
    user_id: int,
    status_update: StatusUpdate,
    current_user: Principal = Depends(require_roles(Role.SUPER_ADMIN, Role.MOH_ADMIN)),
    db: Database = Depends(get_db),
):
    """Activate or deactivate an account; applies on that user's next request"""
    if user_id == current_user.id and not status_update.isActive:
        raise ValidationError("You cannot deactivate your own account")
    if not db.set_user_active(user_id, status_update.isActive):
        raise NotFound("User not found")

    logger.info("User %s set is_active=%s on user %s", current_user.id, status_update.isActive, user_id)
    return {"success": True, "data": {"id": user_id, "isActive": status_update.isActive}}
