"""
Record Repository — the single in-memory owner of patient and test data.

Every read the controllers render comes from a snapshot held here, and every
mutation passes through here on its way to the gateway.

Reload policy: a mutation never patches a previously loaded collection.
The mutated record may have server-derived fields (critical condition) that
the client cannot reproduce, so every mutation returns a ``MutationResult``
with ``reload_required=True`` and marks the affected data stale until the
caller reloads it from the server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from patientsync.client.gateway import RemoteGateway
from patientsync.schemas.history import PatientHistory
from patientsync.schemas.medical_test import MedicalTest, TestInput, TestUpdate
from patientsync.schemas.patient import Patient, PatientInput

logger = logging.getLogger("patientsync.repository")

PatientSnapshot = tuple[Patient, ...]
TestSnapshot = tuple[MedicalTest, ...]


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of a create/update/delete.

    - entity: the record echoed by the server, when it sent one
    - patient_id: the patient whose data the mutation touched
    - reload_required: always True; callers must re-fetch before rendering
    """

    patient_id: Optional[str]
    entity: Any = None
    reload_required: bool = True


@dataclass
class _PatientSlot:
    """Per-patient cached data."""

    record: Optional[Patient] = None
    tests: TestSnapshot = ()
    tests_stale: bool = False
    record_stale: bool = False


class RecordRepository:
    """
    Holds the current patient collection, the critical subset, and the tests
    and latest record for each patient that has been opened.

    Collections are replaced wholesale on every load.  When loads overlap,
    each response is applied as it arrives, so the response that arrives last
    is what every reader sees afterwards.  Snapshots are tuples of frozen
    models; readers cannot mutate them.

    Every mutation bumps a generation counter (one for the collection, one
    per patient).  A load only clears a stale flag if no mutation landed
    while it was in flight; its data is still applied either way.
    """

    def __init__(self, gateway: RemoteGateway) -> None:
        self._gateway = gateway
        self._patients: PatientSnapshot = ()
        self._critical: PatientSnapshot = ()
        self._slots: dict[str, _PatientSlot] = {}
        self._patients_loaded = False
        self._patients_stale = False
        self._loads_applied = 0
        self._generation = 0
        self._patient_generations: dict[str, int] = {}

    # ── Read snapshots ──

    @property
    def patients(self) -> PatientSnapshot:
        return self._patients

    @property
    def critical_patients(self) -> PatientSnapshot:
        return self._critical

    @property
    def patients_loaded(self) -> bool:
        return self._patients_loaded

    @property
    def patients_stale(self) -> bool:
        """True between a patient mutation and the next full reload."""
        return self._patients_stale

    @property
    def loads_applied(self) -> int:
        """Number of patient-collection responses applied so far."""
        return self._loads_applied

    def tests_for(self, patient_id: str) -> TestSnapshot:
        slot = self._slots.get(patient_id)
        return slot.tests if slot else ()

    def patient(self, patient_id: str) -> Optional[Patient]:
        """Latest individually fetched record, else the list entry, else None."""
        slot = self._slots.get(patient_id)
        if slot and slot.record is not None:
            return slot.record
        for patient in self._patients:
            if patient.id == patient_id:
                return patient
        return None

    def is_stale(self, patient_id: str) -> bool:
        slot = self._slots.get(patient_id)
        return bool(slot and (slot.tests_stale or slot.record_stale))

    # ── Loads ──

    async def load_patients(self) -> PatientSnapshot:
        """Fetch every patient and replace the local collection wholesale."""
        started = self._generation
        fetched = await self._gateway.list_patients()
        self._patients = tuple(fetched)
        self._patients_loaded = True
        if self._generation == started:
            self._patients_stale = False
        self._loads_applied += 1
        logger.info("Loaded %d patients", len(self._patients))
        return self._patients

    async def load_critical_patients(self) -> PatientSnapshot:
        fetched = await self._gateway.list_critical_patients()
        self._critical = tuple(fetched)
        logger.info("Loaded %d critical patients", len(self._critical))
        return self._critical

    async def load_tests(self, patient_id: str) -> TestSnapshot:
        """Fetch one patient's tests and replace that patient's list wholesale."""
        started = self._patient_generations.get(patient_id, 0)
        fetched = tuple(await self._gateway.list_tests(patient_id))
        slot = self._slot_after_load(patient_id, started)
        if slot is None:
            return fetched
        slot.tests = fetched
        if self._patient_generations.get(patient_id, 0) == started:
            slot.tests_stale = False
        logger.info("Loaded %d tests for patient %s", len(fetched), patient_id)
        return fetched

    async def refresh_patient(self, patient_id: str) -> Patient:
        """
        Fetch one patient as the server currently sees it.

        The record is kept as that patient's latest copy; it is NOT spliced
        into ``patients``, which only ever changes via ``load_patients``.
        """
        started = self._patient_generations.get(patient_id, 0)
        record = await self._gateway.get_patient(patient_id)
        slot = self._slot_after_load(patient_id, started)
        if slot is None:
            return record
        slot.record = record
        if self._patient_generations.get(patient_id, 0) == started:
            slot.record_stale = False
        logger.debug(
            "Refreshed patient %s (critical=%s)", patient_id, record.critical_condition
        )
        return record

    async def load_history(self, patient_id: str) -> PatientHistory:
        return await self._gateway.get_history(patient_id)

    # ── Patient mutations ──

    async def create_patient(self, data: PatientInput) -> MutationResult:
        created = await self._gateway.create_patient(data)
        self._mark_patients_stale()
        logger.info("Created patient %s", created.id)
        return MutationResult(patient_id=created.id, entity=created)

    async def update_patient(self, patient_id: str, data: PatientInput) -> MutationResult:
        updated = await self._gateway.update_patient(patient_id, data)
        self._mark_patients_stale()
        self._mark_stale(patient_id)
        logger.info("Updated patient %s", patient_id)
        return MutationResult(patient_id=patient_id, entity=updated)

    async def delete_patient(self, patient_id: str) -> MutationResult:
        await self._gateway.delete_patient(patient_id)
        self._mark_patients_stale()
        # Tests cascade server-side; drop everything cached for the patient
        self._bump(patient_id)
        self._slots.pop(patient_id, None)
        logger.info("Deleted patient %s", patient_id)
        return MutationResult(patient_id=patient_id)

    # ── Test mutations ──
    # Each one can flip the patient's critical flag server-side, so both the
    # test list and the patient record are marked stale.

    async def create_test(self, patient_id: str, data: TestInput) -> MutationResult:
        created = await self._gateway.create_test(patient_id, data)
        self._mark_stale(patient_id)
        self._mark_patients_stale()
        logger.info("Created test %s for patient %s", created.id, patient_id)
        return MutationResult(patient_id=patient_id, entity=created)

    async def update_test(
        self, patient_id: str, test_id: str, data: TestInput
    ) -> MutationResult:
        """Change a test's type/value.  The original date is always sent back."""
        if isinstance(data, TestUpdate):
            update = data
        else:
            original = self._cached_test(patient_id, test_id)
            if original is None:
                original = await self._gateway.get_test(patient_id, test_id)
            update = TestUpdate.for_test(original, data)

        updated = await self._gateway.update_test(patient_id, test_id, update)
        self._mark_stale(patient_id)
        self._mark_patients_stale()
        logger.info("Updated test %s for patient %s", test_id, patient_id)
        return MutationResult(patient_id=patient_id, entity=updated)

    async def delete_test(self, patient_id: str, test_id: str) -> MutationResult:
        await self._gateway.delete_test(patient_id, test_id)
        self._mark_stale(patient_id)
        self._mark_patients_stale()
        logger.info("Deleted test %s for patient %s", test_id, patient_id)
        return MutationResult(patient_id=patient_id)

    # ── Internal ──

    def _slot(self, patient_id: str) -> _PatientSlot:
        slot = self._slots.get(patient_id)
        if slot is None:
            slot = _PatientSlot()
            self._slots[patient_id] = slot
        return slot

    def _slot_after_load(self, patient_id: str, started: int) -> Optional[_PatientSlot]:
        """Slot for a finished load, or None if the patient was deleted meanwhile."""
        if (
            patient_id not in self._slots
            and self._patient_generations.get(patient_id, 0) != started
        ):
            logger.debug("Dropping late load for deleted patient %s", patient_id)
            return None
        return self._slot(patient_id)

    def _bump(self, patient_id: str) -> None:
        self._patient_generations[patient_id] = (
            self._patient_generations.get(patient_id, 0) + 1
        )

    def _mark_patients_stale(self) -> None:
        self._generation += 1
        self._patients_stale = True

    def _mark_stale(self, patient_id: str) -> None:
        self._bump(patient_id)
        slot = self._slot(patient_id)
        slot.tests_stale = True
        slot.record_stale = True

    def _cached_test(self, patient_id: str, test_id: str) -> Optional[MedicalTest]:
        for test in self.tests_for(patient_id):
            if test.id == test_id:
                return test
        return None
