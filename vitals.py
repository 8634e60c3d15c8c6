"""Vital sign parsing and threshold alerting.

``build_measurements`` turns one submission into the batch of readings
to persist, rejecting the whole submission on any malformed value.
``evaluate_alerts`` is a pure function over a persisted batch for one
patient and returns the alerts to write.  Every out-of-range reading
yields a new alert; nothing is deduplicated against earlier alerts.
"""
import logging
import math
import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from errors import ValidationError
from models import VitalsSubmission

logger = logging.getLogger(__name__)


class VitalType(str, Enum):
    HEART_RATE = "heartRate"
    BP_SYSTOLIC = "bloodPressureSystolic"
    BP_DIASTOLIC = "bloodPressureDiastolic"
    TEMPERATURE = "temperature"
    BLOOD_SUGAR = "bloodSugar"
    OXYGEN_SATURATION = "oxygenSaturation"
    WEIGHT = "weight"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


UNITS = {
    VitalType.HEART_RATE: "bpm",
    VitalType.BP_SYSTOLIC: "mmHg",
    VitalType.BP_DIASTOLIC: "mmHg",
    VitalType.TEMPERATURE: "C",
    VitalType.BLOOD_SUGAR: "mg/dL",
    VitalType.OXYGEN_SATURATION: "%",
    VitalType.WEIGHT: "kg",
}

# submission field -> vital type, for readings after heart rate and blood pressure
SIMPLE_FIELDS = [
    ("temperature", VitalType.TEMPERATURE),
    ("bloodSugar", VitalType.BLOOD_SUGAR),
    ("oxygenSaturation", VitalType.OXYGEN_SATURATION),
    ("weight", VitalType.WEIGHT),
]

BP_SYSTOLIC_LIMIT = 140
BP_DIASTOLIC_LIMIT = 90
BP_SYSTOLIC_SEVERE = 160
BP_DIASTOLIC_SEVERE = 100
HEART_RATE_LOW = 60
HEART_RATE_HIGH = 100
BLOOD_SUGAR_LOW = 70
BLOOD_SUGAR_HIGH = 200

ALERT_TYPE = "vital"

# plain decimal numbers only; rejects digit grouping, hex, nan and inf
NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
BP_FORMAT_ERROR = "Invalid blood pressure format. Use 'systolic/diastolic'."


def parse_blood_pressure(raw: str):
    """Split ``"sys/dia"`` into two finite numbers or raise ``ValidationError``"""
    parts = [part.strip() for part in raw.split("/")] if isinstance(raw, str) else []
    if len(parts) != 2 or not all(NUMBER.fullmatch(part) for part in parts):
        raise ValidationError(BP_FORMAT_ERROR)
    systolic, diastolic = float(parts[0]), float(parts[1])
    if not (math.isfinite(systolic) and math.isfinite(diastolic)):
        raise ValidationError(BP_FORMAT_ERROR)
    return systolic, diastolic


def check_blood_pressure_pairs(measurements: List[dict]) -> None:
    """Every systolic reading in a batch needs a diastolic one and vice versa"""
    systolic = sum(1 for m in measurements if m["type"] == VitalType.BP_SYSTOLIC.value)
    diastolic = sum(1 for m in measurements if m["type"] == VitalType.BP_DIASTOLIC.value)
    if systolic != diastolic:
        raise ValidationError("Blood pressure reading is missing its paired value")


def _measurement(patient_id, vital_type, value, recorded_at, submission, doctor_id):
    if not math.isfinite(value):
        raise ValidationError(f"Invalid value for {vital_type.value}")
    return {
        "patient_id": patient_id,
        "type": vital_type.value,
        "value": value,
        "unit": UNITS[vital_type],
        "recorded_at": recorded_at,
        "source": submission.source,
        "doctor_id": doctor_id,
        "notes": submission.notes,
    }


def build_measurements(
    submission: VitalsSubmission,
    patient_id: int,
    recorded_at: str,
    doctor_id: Optional[int] = None,
) -> List[dict]:
    """Expand a submission into its readings; blood pressure yields two"""
    batch = []
    if submission.heartRate is not None:
        batch.append(_measurement(patient_id, VitalType.HEART_RATE, submission.heartRate,
                                  recorded_at, submission, doctor_id))
    if submission.bloodPressure is not None:
        systolic, diastolic = parse_blood_pressure(submission.bloodPressure)
        batch.append(_measurement(patient_id, VitalType.BP_SYSTOLIC, systolic,
                                  recorded_at, submission, doctor_id))
        batch.append(_measurement(patient_id, VitalType.BP_DIASTOLIC, diastolic,
                                  recorded_at, submission, doctor_id))
    for field, vital_type in SIMPLE_FIELDS:
        value = getattr(submission, field)
        if value is not None:
            batch.append(_measurement(patient_id, vital_type, value, recorded_at, submission, doctor_id))

    if not batch:
        raise ValidationError("At least one vital sign is required")
    check_blood_pressure_pairs(batch)
    return batch


def _alert(patient_id, message, severity, record, created_at):
    return {
        "patient_id": patient_id,
        "type": ALERT_TYPE,
        "message": message,
        "severity": severity.value,
        "related_record_id": record.get("id"),
        "is_resolved": False,
        "created_at": created_at,
    }


def evaluate_alerts(patient_id: int, measurements: List[dict], created_at: str = None) -> List[dict]:
    """Apply the clinical thresholds to one batch and return the alerts it fires"""
    if created_at is None:
        created_at = datetime.now(timezone.utc).isoformat()
    check_blood_pressure_pairs(measurements)

    by_type = {}
    for m in measurements:
        by_type.setdefault(m["type"], []).append(m)

    alerts = []
    for m in measurements:
        vital_type = m["type"]
        value = m["value"]

        if vital_type == VitalType.BP_SYSTOLIC.value:
            diastolic = by_type[VitalType.BP_DIASTOLIC.value][0]["value"]
            if value > BP_SYSTOLIC_LIMIT or diastolic > BP_DIASTOLIC_LIMIT:
                severe = value > BP_SYSTOLIC_SEVERE or diastolic > BP_DIASTOLIC_SEVERE
                alerts.append(_alert(patient_id, "High blood pressure detected",
                                     Severity.HIGH if severe else Severity.MEDIUM, m, created_at))

        elif vital_type == VitalType.HEART_RATE.value:
            if value < HEART_RATE_LOW:
                alerts.append(_alert(patient_id, "Low heart rate detected", Severity.MEDIUM, m, created_at))
            elif value > HEART_RATE_HIGH:
                alerts.append(_alert(patient_id, "High heart rate detected", Severity.MEDIUM, m, created_at))

        elif vital_type == VitalType.BLOOD_SUGAR.value:
            if value < BLOOD_SUGAR_LOW:
                alerts.append(_alert(patient_id, "Low blood sugar detected", Severity.HIGH, m, created_at))
            elif value > BLOOD_SUGAR_HIGH:
                alerts.append(_alert(patient_id, "High blood sugar detected", Severity.HIGH, m, created_at))

    for a in alerts:
        logger.info("Vital alert for patient %s: %s (%s)", patient_id, a["message"], a["severity"])
    return alerts


def format_value(value):
    if value is None:
        return None
    return int(value) if float(value).is_integer() else value


def summarize(measurements: List[dict], source: str) -> dict:
    """Echo a persisted batch back in submission shape"""
    by_type = {m["type"]: m for m in measurements}

    def value_of(vital_type):
        m = by_type.get(vital_type.value)
        return format_value(m["value"]) if m else None

    blood_pressure = None
    if VitalType.BP_SYSTOLIC.value in by_type:
        blood_pressure = f"{value_of(VitalType.BP_SYSTOLIC)}/{value_of(VitalType.BP_DIASTOLIC)}"

    return {
        "id": measurements[0]["id"] if measurements else None,
        "heartRate": value_of(VitalType.HEART_RATE),
        "bloodPressure": blood_pressure,
        "temperature": value_of(VitalType.TEMPERATURE),
        "bloodSugar": value_of(VitalType.BLOOD_SUGAR),
        "oxygenSaturation": value_of(VitalType.OXYGEN_SATURATION),
        "weight": value_of(VitalType.WEIGHT),
        "timestamp": measurements[0]["recorded_at"] if measurements else None,
        "source": source,
    }
