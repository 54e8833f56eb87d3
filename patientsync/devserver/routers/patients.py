from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from patientsync.devserver.store import RecordStore
from patientsync.schemas.patient import Gender

router = APIRouter(prefix="/api/patients")


class PatientBody(BaseModel):
    name: str = Field(min_length=1)
    age: int = Field(ge=0, le=120)
    gender: Gender
    address: Optional[str] = None
    phoneNumber: Optional[str] = None
    medicalHistory: list[str] = Field(default_factory=list)


class TestBody(BaseModel):
    __test__ = False

    type: str = Field(min_length=1)
    value: str = Field(min_length=1)
    # Sent back on update; the stored date always wins
    date: Optional[str] = None


def _store(request: Request) -> RecordStore:
    return request.app.state.store


def _patient_fields(body: PatientBody) -> dict:
    return {
        "name": body.name,
        "age": body.age,
        "gender": body.gender.value,
        "address": body.address,
        "phone_number": body.phoneNumber,
        "medical_history": list(body.medicalHistory),
    }


def _require_patient(store: RecordStore, patient_id: str):
    patient = store.get_patient(patient_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


@router.get("")
async def list_patients(request: Request):
    return [p.to_json() for p in _store(request).list_patients()]


@router.post("", status_code=201)
async def create_patient(body: PatientBody, request: Request):
    return _store(request).create_patient(_patient_fields(body)).to_json()


# Declared before /{patient_id} so "critical" is not read as an id
@router.get("/critical")
async def list_critical_patients(request: Request):
    return [p.to_json() for p in _store(request).list_critical()]


@router.get("/{patient_id}")
async def get_patient(patient_id: str, request: Request):
    return _require_patient(_store(request), patient_id).to_json()


@router.put("/{patient_id}")
async def update_patient(patient_id: str, body: PatientBody, request: Request):
    patient = _store(request).update_patient(patient_id, _patient_fields(body))
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient.to_json()


@router.delete("/{patient_id}")
async def delete_patient(patient_id: str, request: Request):
    if not _store(request).delete_patient(patient_id):
        raise HTTPException(status_code=404, detail="Patient not found")
    return {"message": "Patient deleted"}


@router.get("/{patient_id}/history")
async def get_history(patient_id: str, request: Request):
    store = _store(request)
    _require_patient(store, patient_id)
    return store.history(patient_id)


@router.get("/{patient_id}/tests")
async def list_tests(patient_id: str, request: Request):
    store = _store(request)
    _require_patient(store, patient_id)
    return [t.to_json() for t in store.list_tests(patient_id)]


@router.post("/{patient_id}/tests", status_code=201)
async def create_test(patient_id: str, body: TestBody, request: Request):
    store = _store(request)
    _require_patient(store, patient_id)
    return store.create_test(patient_id, body.type, body.value).to_json()


@router.get("/{patient_id}/tests/{test_id}")
async def get_test(patient_id: str, test_id: str, request: Request):
    test = _store(request).get_test(patient_id, test_id)
    if test is None:
        raise HTTPException(status_code=404, detail="Test not found")
    return test.to_json()


@router.put("/{patient_id}/tests/{test_id}")
async def update_test(patient_id: str, test_id: str, body: TestBody, request: Request):
    test = _store(request).update_test(patient_id, test_id, body.type, body.value)
    if test is None:
        raise HTTPException(status_code=404, detail="Test not found")
    return test.to_json()


@router.delete("/{patient_id}/tests/{test_id}", status_code=204)
async def delete_test(patient_id: str, test_id: str, request: Request):
    if not _store(request).delete_test(patient_id, test_id):
        raise HTTPException(status_code=404, detail="Test not found")
    return Response(status_code=204)
