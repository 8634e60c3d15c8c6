import pytest

from errors import ValidationError
from models import VitalsSubmission
from vitals import (
    build_measurements,
    check_blood_pressure_pairs,
    evaluate_alerts,
    parse_blood_pressure,
    summarize,
)

RECORDED_AT = "2025-01-01T08:00:00+00:00"


def persist(batch):
    """Stand-in for the store: hand out ids in order"""
    return [dict(m, id=i) for i, m in enumerate(batch, start=1)]


def submit(**fields):
    batch = persist(build_measurements(VitalsSubmission(**fields), 1, RECORDED_AT))
    return batch, evaluate_alerts(1, batch, created_at=RECORDED_AT)


def test_low_heart_rate():
    batch, alerts = submit(heartRate=45)
    assert len(batch) == 1
    assert [(a["message"], a["severity"]) for a in alerts] == [("Low heart rate detected", "medium")]
    assert alerts[0]["type"] == "vital"
    assert alerts[0]["related_record_id"] == 1
    assert alerts[0]["is_resolved"] is False


def test_high_heart_rate():
    _, alerts = submit(heartRate=130)
    assert [(a["message"], a["severity"]) for a in alerts] == [("High heart rate detected", "medium")]


def test_severe_blood_pressure_splits_into_two_readings():
    batch, alerts = submit(bloodPressure="170/110")

    assert [(m["type"], m["value"], m["unit"]) for m in batch] == [
        ("bloodPressureSystolic", 170, "mmHg"),
        ("bloodPressureDiastolic", 110, "mmHg"),
    ]
    assert len(alerts) == 1
    assert alerts[0]["message"] == "High blood pressure detected"
    assert alerts[0]["severity"] == "high"


@pytest.mark.parametrize(
    "reading, severity",
    [
        ("150/85", "medium"),
        ("130/95", "medium"),
        ("161/80", "high"),
        ("120/101", "high"),
    ],
)
def test_blood_pressure_severity(reading, severity):
    _, alerts = submit(bloodPressure=reading)
    assert [a["severity"] for a in alerts] == [severity]


def test_blood_pressure_at_threshold_is_normal():
    _, alerts = submit(bloodPressure="140/90")
    assert alerts == []


def test_low_blood_sugar():
    _, alerts = submit(bloodSugar=65)
    assert [(a["message"], a["severity"]) for a in alerts] == [("Low blood sugar detected", "high")]


def test_high_blood_sugar():
    _, alerts = submit(bloodSugar=240)
    assert [(a["message"], a["severity"]) for a in alerts] == [("High blood sugar detected", "high")]


def test_normal_readings_raise_nothing():
    _, alerts = submit(heartRate=72, bloodSugar=150)
    assert alerts == []


def test_several_rules_can_fire_together():
    _, alerts = submit(heartRate=110, bloodPressure="150/95", bloodSugar=50, temperature=37.2)
    assert [a["message"] for a in alerts] == [
        "High heart rate detected",
        "High blood pressure detected",
        "Low blood sugar detected",
    ]


def test_full_submission_yields_seven_readings_with_units():
    batch, _ = submit(
        heartRate=80,
        bloodPressure="120/80",
        temperature=36.8,
        bloodSugar=100,
        oxygenSaturation=98,
        weight=70.5,
        source="device",
        notes="morning",
    )
    assert {m["type"]: m["unit"] for m in batch} == {
        "heartRate": "bpm",
        "bloodPressureSystolic": "mmHg",
        "bloodPressureDiastolic": "mmHg",
        "temperature": "C",
        "bloodSugar": "mg/dL",
        "oxygenSaturation": "%",
        "weight": "kg",
    }
    assert all(m["source"] == "device" and m["notes"] == "morning" for m in batch)
    assert all(m["recorded_at"] == RECORDED_AT for m in batch)


@pytest.mark.parametrize(
    "reading",
    ["abc/90", "120", "120/80/70", "/80", "nan/90", "inf/90", "1_000/8_0", "0x78/80", ""],
)
def test_unparsable_blood_pressure_rejects_submission(reading):
    with pytest.raises(ValidationError):
        build_measurements(VitalsSubmission(heartRate=45, bloodPressure=reading), 1, RECORDED_AT)


def test_parse_blood_pressure_accepts_decimals():
    assert parse_blood_pressure("120.5/80") == (120.5, 80.0)
    assert parse_blood_pressure(" 120 / 80 ") == (120.0, 80.0)


def test_empty_submission_is_rejected():
    with pytest.raises(ValidationError):
        build_measurements(VitalsSubmission(), 1, RECORDED_AT)


def test_systolic_without_diastolic_is_a_validation_error():
    batch = persist(build_measurements(VitalsSubmission(bloodPressure="150/95"), 1, RECORDED_AT))
    with pytest.raises(ValidationError):
        evaluate_alerts(1, batch[:1])
    with pytest.raises(ValidationError):
        check_blood_pressure_pairs(batch[1:])
    check_blood_pressure_pairs(batch)


def test_summary_echoes_submission_shape():
    batch, _ = submit(heartRate=45, bloodPressure="170/110", weight=70.5)
    summary = summarize(batch, "manual")

    assert summary["id"] == 1
    assert summary["heartRate"] == 45
    assert summary["bloodPressure"] == "170/110"
    assert summary["weight"] == 70.5
    assert summary["temperature"] is None
    assert summary["timestamp"] == RECORDED_AT
    assert summary["source"] == "manual"
