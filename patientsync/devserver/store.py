"""
In-memory record store behind the development API.

Stands in for the hospital's record service when running locally and in
tests.  It owns critical-condition scoring the way the real service does:
the flag is recomputed from each patient's latest reading per test type
whenever a test is added, changed or removed.

Identifiers are 24-hex strings in the style of MongoDB ObjectIds.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from patientsync.validators import TestType, known_test_type

logger = logging.getLogger("patientsync.devserver.store")


# ── Critical rules: latest reading per type vs thresholds ──
# (test type, reading index, operator, threshold, human description)
# Blood pressure readings are "systolic/diastolic"; index picks the part.
CRITICAL_RULES: list[tuple[TestType, int, str, float, str]] = [
    (TestType.BLOOD_PRESSURE, 0, ">=", 180, "Systolic >= 180 mmHg"),
    (TestType.BLOOD_PRESSURE, 0, "<", 90, "Systolic < 90 mmHg"),
    (TestType.BLOOD_PRESSURE, 1, ">=", 120, "Diastolic >= 120 mmHg"),
    (TestType.RESPIRATORY_RATE, 0, "<", 10, "Respiratory rate < 10/min"),
    (TestType.RESPIRATORY_RATE, 0, ">", 30, "Respiratory rate > 30/min"),
    (TestType.BLOOD_OXYGEN_LEVEL, 0, "<", 90, "SpO2 < 90%"),
    (TestType.HEARTBEAT_RATE, 0, "<", 40, "Heart rate < 40 bpm"),
    (TestType.HEARTBEAT_RATE, 0, ">", 130, "Heart rate > 130 bpm"),
]


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _numbers(value: str) -> list[float]:
    return [float(n) for n in re.findall(r"\d+(?:\.\d+)?", value)]


def triggered_rules(test_type: str, value: str) -> list[str]:
    """Descriptions of every critical rule a single reading breaks."""
    member = known_test_type(test_type)
    if member is None:
        return []
    numbers = _numbers(value)
    fired = []
    for rule_type, index, op, threshold, description in CRITICAL_RULES:
        if rule_type != member or index >= len(numbers):
            continue
        reading = numbers[index]
        if (
            (op == ">" and reading > threshold)
            or (op == ">=" and reading >= threshold)
            or (op == "<" and reading < threshold)
        ):
            fired.append(description)
    return fired


@dataclass
class StoredTest:
    id: str
    patient_id: str
    date: datetime
    type: str
    value: str

    def to_json(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "patientId": self.patient_id,
            "date": self.date.isoformat(),
            "type": self.type,
            "value": self.value,
        }


@dataclass
class StoredPatient:
    id: str
    name: str
    age: int
    gender: str
    address: Optional[str] = None
    phone_number: Optional[str] = None
    medical_history: list[str] = field(default_factory=list)
    critical_condition: bool = False

    def to_json(self) -> dict[str, Any]:
        # Extended-JSON id, as the production service emits it
        return {
            "_id": {"$oid": self.id},
            "name": self.name,
            "age": self.age,
            "gender": self.gender,
            "address": self.address,
            "phoneNumber": self.phone_number,
            "medicalHistory": list(self.medical_history),
            "criticalCondition": self.critical_condition,
        }


class RecordStore:
    """Patients and tests keyed by id, in insertion order."""

    def __init__(self) -> None:
        self._patients: dict[str, StoredPatient] = {}
        self._tests: dict[str, StoredTest] = {}

    # ── Patients ──

    def list_patients(self) -> list[StoredPatient]:
        return list(self._patients.values())

    def list_critical(self) -> list[StoredPatient]:
        return [p for p in self._patients.values() if p.critical_condition]

    def get_patient(self, patient_id: str) -> Optional[StoredPatient]:
        return self._patients.get(patient_id)

    def create_patient(self, data: dict[str, Any]) -> StoredPatient:
        patient = StoredPatient(id=_new_id(), **data)
        self._patients[patient.id] = patient
        logger.info("Created patient %s", patient.id)
        return patient

    def update_patient(self, patient_id: str, data: dict[str, Any]) -> Optional[StoredPatient]:
        patient = self._patients.get(patient_id)
        if patient is None:
            return None
        for key, value in data.items():
            setattr(patient, key, value)
        return patient

    def delete_patient(self, patient_id: str) -> bool:
        if self._patients.pop(patient_id, None) is None:
            return False
        # cascade
        for test_id in [t.id for t in self._tests.values() if t.patient_id == patient_id]:
            del self._tests[test_id]
        logger.info("Deleted patient %s", patient_id)
        return True

    # ── Tests ──

    def list_tests(self, patient_id: str) -> list[StoredTest]:
        return [t for t in self._tests.values() if t.patient_id == patient_id]

    def get_test(self, patient_id: str, test_id: str) -> Optional[StoredTest]:
        test = self._tests.get(test_id)
        if test is None or test.patient_id != patient_id:
            return None
        return test

    def create_test(self, patient_id: str, test_type: str, value: str) -> StoredTest:
        test = StoredTest(
            id=_new_id(), patient_id=patient_id, date=_now(), type=test_type, value=value
        )
        self._tests[test.id] = test
        self._rescore(patient_id)
        return test

    def update_test(
        self, patient_id: str, test_id: str, test_type: str, value: str
    ) -> Optional[StoredTest]:
        test = self.get_test(patient_id, test_id)
        if test is None:
            return None
        # date is fixed at creation
        test.type = test_type
        test.value = value
        self._rescore(patient_id)
        return test

    def delete_test(self, patient_id: str, test_id: str) -> bool:
        if self.get_test(patient_id, test_id) is None:
            return False
        del self._tests[test_id]
        self._rescore(patient_id)
        return True

    def history(self, patient_id: str) -> dict[str, Any]:
        patient = self._patients[patient_id]
        readings = [
            f"{t.date.date().isoformat()} {t.type}: {t.value}"
            for t in self.list_tests(patient_id)
        ]
        return {
            "patientId": patient_id,
            "conditions": list(patient.medical_history),
            "readings": readings,
        }

    # ── Internal ──

    def _rescore(self, patient_id: str) -> None:
        patient = self._patients.get(patient_id)
        if patient is None:
            return
        latest: dict[str, StoredTest] = {}
        for test in self.list_tests(patient_id):
            key = test.type.lower()
            if key not in latest or test.date >= latest[key].date:
                latest[key] = test
        fired = [
            rule for test in latest.values() for rule in triggered_rules(test.type, test.value)
        ]
        critical = bool(fired)
        if critical != patient.critical_condition:
            logger.info(
                "Patient %s critical condition -> %s (%s)",
                patient_id, critical, ", ".join(fired) or "no rules fired",
            )
        patient.critical_condition = critical
