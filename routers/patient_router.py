import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth import get_db, require_roles
from database import Database
from errors import NotFound, ValidationError
from models import Principal, Role, VitalsSubmission
from vitals import build_measurements, evaluate_alerts, summarize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patient", tags=["Patient"])

patient_only = require_roles(Role.PATIENT)


def patient_id_for(principal: Principal, db: Database) -> int:
    patient_id = db.get_patient_id(principal.id)
    if patient_id is None:
        raise NotFound("Patient not found")
    return patient_id


def pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit)}


@router.post("/vitals", status_code=201)
def submit_vitals(
    submission: VitalsSubmission,
    current_user: Principal = Depends(patient_only),
    db: Database = Depends(get_db),
):
    """Record a set of vital signs and raise alerts for out-of-range readings"""
    patient_id = patient_id_for(current_user, db)
    recorded_at = datetime.now(timezone.utc).isoformat()

    try:
        if submission.doctorId is not None and db.get_doctor(submission.doctorId) is None:
            raise ValidationError("Doctor not found")
        measurements = build_measurements(submission, patient_id, recorded_at, submission.doctorId)
    except ValidationError as exc:
        logger.info("Rejected vitals from patient %s: %s", patient_id, exc.message)
        raise

    # Two separate atomic writes; alerts are derived and may lag a crash
    created = db.create_vitals(measurements)
    alerts = db.create_alerts(evaluate_alerts(patient_id, created))

    return {
        "success": True,
        "vitals": summarize(created, submission.source),
        "alerts": [
            {"id": a["id"], "message": a["message"], "severity": a["severity"],
             "relatedRecordId": a["related_record_id"]}
            for a in alerts
        ],
    }


@router.get("/vitals")
def get_vitals(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    current_user: Principal = Depends(patient_only),
    db: Database = Depends(get_db),
):
    patient_id = patient_id_for(current_user, db)
    rows, total = db.list_vitals(patient_id, page, limit, startDate, endDate)
    return {"success": True, "data": rows, "pagination": pagination(page, limit, total)}


@router.get("/vitals/latest")
def get_latest_vitals(
    current_user: Principal = Depends(patient_only),
    db: Database = Depends(get_db),
):
    patient_id = patient_id_for(current_user, db)
    return {"success": True, "data": db.latest_vitals(patient_id, limit=10)}


@router.get("/alerts")
def get_health_alerts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    isRead: Optional[bool] = None,
    current_user: Principal = Depends(patient_only),
    db: Database = Depends(get_db),
):
    patient_id = patient_id_for(current_user, db)
    rows, total = db.list_alerts(patient_id, page, limit, isRead)
    for row in rows:
        row["is_resolved"] = bool(row["is_resolved"])
        row["is_read"] = bool(row["is_read"])
    return {"success": True, "data": rows, "pagination": pagination(page, limit, total)}
