import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends

from auth import get_db, require_roles
from config import VALID_REGIONS
from database import Database
from errors import DuplicateRecord, ValidationError
from models import HospitalCreate, PharmacyCreate, Principal, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/facilities", tags=["Facilities"])

MANAGERS = (Role.SUPER_ADMIN, Role.MOH_ADMIN)
VIEWERS = (Role.SUPER_ADMIN, Role.MOH_ADMIN, Role.REGION_ADMIN)


def _region(raw: str) -> str:
    region = raw.strip().lower()
    if region not in VALID_REGIONS:
        raise ValidationError(f"Invalid region. Must be one of: {VALID_REGIONS}")
    return region


def _visible_region(current_user: Principal, requested: Optional[str]) -> Optional[str]:
    # region admins only ever see their own region
    if current_user.role is Role.REGION_ADMIN:
        return current_user.region
    return requested.strip().lower() if requested else None


@router.post("/hospitals", status_code=201)
def create_hospital(
    hospital: HospitalCreate,
    current_user: Principal = Depends(require_roles(*MANAGERS)),
    db: Database = Depends(get_db),
):
    try:
        row = db.create_hospital(hospital.name, hospital.code, _region(hospital.region), hospital.address)
    except sqlite3.IntegrityError:
        raise DuplicateRecord("Hospital with this code already exists")
    logger.info("User %s created hospital %s", current_user.id, row["id"])
    return {"success": True, "data": row}


@router.get("/hospitals")
def list_hospitals(
    region: Optional[str] = None,
    current_user: Principal = Depends(require_roles(*VIEWERS)),
    db: Database = Depends(get_db),
):
    return {"success": True, "data": db.list_hospitals(_visible_region(current_user, region))}


@router.post("/pharmacies", status_code=201)
def create_pharmacy(
    pharmacy: PharmacyCreate,
    current_user: Principal = Depends(require_roles(*MANAGERS)),
    db: Database = Depends(get_db),
):
    try:
        row = db.create_pharmacy(pharmacy.name, pharmacy.code, _region(pharmacy.region), pharmacy.address)
    except sqlite3.IntegrityError:
        raise DuplicateRecord("Pharmacy with this code already exists")
    logger.info("User %s created pharmacy %s", current_user.id, row["id"])
    return {"success": True, "data": row}


@router.get("/pharmacies")
def list_pharmacies(
    region: Optional[str] = None,
    current_user: Principal = Depends(require_roles(*VIEWERS)),
    db: Database = Depends(get_db),
):
    return {"success": True, "data": db.list_pharmacies(_visible_region(current_user, region))}
