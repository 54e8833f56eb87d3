"""
Patient models — decoded server records and client-side input.

A ``Patient`` always comes from a server response and always carries an id.
A ``PatientInput`` is what the client submits on create/update; it has no id
and no critical-condition flag, both of which belong to the server.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from patientsync.schemas.common import ObjectId
from patientsync.validators import MAX_AGE, MIN_AGE, validate_phone_number


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


def _lower_gender(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class Patient(BaseModel):
    """A patient record as last reported by the server (read-only)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: ObjectId = Field(validation_alias=AliasChoices("_id", "id"))
    name: str = Field(min_length=1)
    age: int = Field(ge=MIN_AGE, le=MAX_AGE)
    gender: Gender
    address: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    medical_history: list[str] = Field(default_factory=list, alias="medicalHistory")
    # Server-computed; never derived on the client
    critical_condition: bool = Field(default=False, alias="criticalCondition")

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value: Any) -> Any:
        return _lower_gender(value)

    @field_validator("medical_history", mode="before")
    @classmethod
    def _null_history(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("critical_condition", mode="before")
    @classmethod
    def _null_critical(cls, value: Any) -> Any:
        return False if value is None else value


class PatientInput(BaseModel):
    """Validated patient data for create and update requests."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    age: int = Field(ge=MIN_AGE, le=MAX_AGE)
    gender: Gender
    address: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    medical_history: list[str] = Field(default_factory=list, alias="medicalHistory")

    @field_validator("name")
    @classmethod
    def _name_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please enter a name")
        return value

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value: Any) -> Any:
        return _lower_gender(value)

    @field_validator("address", mode="before")
    @classmethod
    def _blank_address(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone_number")
    @classmethod
    def _phone_format(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        if not validate_phone_number(value):
            raise ValueError("Please enter a valid 10-digit phone number")
        return value.strip()

    @field_validator("medical_history", mode="before")
    @classmethod
    def _split_history(cls, value: Any) -> Any:
        # Forms collect history as one comma-separated text field
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, list):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    def to_payload(self) -> dict[str, Any]:
        """JSON body for the record service (camelCase keys, no nulls)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_patient(cls, patient: Patient, **changes: Any) -> PatientInput:
        """Start an update form from an existing record."""
        data = {
            "name": patient.name,
            "age": patient.age,
            "gender": patient.gender,
            "address": patient.address,
            "phone_number": patient.phone_number,
            "medical_history": list(patient.medical_history),
        }
        data.update(changes)
        return cls(**data)
