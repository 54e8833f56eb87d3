"""
Aggregated medical history for one patient (``GET /patients/{id}/history``).

The server groups history into named categories (allergies, surgeries, ...).
The category set is open, so any list-valued key besides ``patientId`` is
kept as a category.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from patientsync.schemas.common import ObjectId


class PatientHistory(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    patient_id: ObjectId = Field(alias="patientId")

    @property
    def categories(self) -> dict[str, list[str]]:
        extra = self.model_extra or {}
        return {
            key: [str(item) for item in value]
            for key, value in extra.items()
            if isinstance(value, list)
        }
