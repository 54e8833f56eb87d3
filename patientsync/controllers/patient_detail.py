"""
Patient Detail Controller — one patient's header plus their tests.

The header and the test list load independently and may finish in either
order; a failure in one never clears or blocks the other.

Adding, editing or deleting a test can flip the patient's critical flag on
the server, so after any mutation both halves are re-fetched.  That reload
is the only way the flag changes here; it is never worked out locally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from patientsync.client.errors import GatewayError
from patientsync.controllers.base import BaseController, ChangeListener, LoadState
from patientsync.schemas.history import PatientHistory
from patientsync.schemas.medical_test import TestInput
from patientsync.schemas.patient import Patient, PatientInput
from patientsync.store.repository import MutationResult, RecordRepository, TestSnapshot

Mutation = Callable[[], Awaitable[MutationResult]]


class PatientDetailController(BaseController):
    """Backs the patient detail screen for a single ``patient_id``."""

    logger = logging.getLogger("patientsync.controllers.detail")

    def __init__(
        self,
        repository: RecordRepository,
        patient_id: str,
        *,
        patient: Optional[Patient] = None,
        on_change: Optional[ChangeListener] = None,
    ) -> None:
        super().__init__(repository, on_change=on_change)
        self.patient_id = patient_id

        # Whatever is already known renders straight away; open() refreshes it
        self.patient: Optional[Patient] = patient or repository.patient(patient_id)
        self.patient_state = LoadState.IDLE
        self.patient_error: Optional[GatewayError] = None

        self.tests: TestSnapshot = repository.tests_for(patient_id)
        self.tests_state = LoadState.IDLE
        self.tests_error: Optional[GatewayError] = None

        self.history: Optional[PatientHistory] = None
        self.history_state = LoadState.IDLE

    @property
    def critical(self) -> bool:
        """Critical flag from the latest server copy of the patient."""
        return bool(self.patient and self.patient.critical_condition)

    @property
    def ready(self) -> bool:
        return (
            self.patient_state == LoadState.LOADED
            and self.tests_state == LoadState.LOADED
        )

    # ── Loading ──

    async def open(self) -> None:
        """Screen entry: fetch the patient and their tests concurrently."""
        await self.reload()

    async def reload(self) -> None:
        if not self._is_active("reload"):
            return
        await asyncio.gather(self._load_patient(), self._load_tests())

    async def load_history(self) -> Optional[PatientHistory]:
        if not self._is_active("history load"):
            return None
        self.history_state = LoadState.LOADING
        self._notify()
        try:
            history = await self._repository.load_history(self.patient_id)
        except GatewayError as exc:
            if self._surface(exc, "load medical history") is not None:
                self.history_state = LoadState.FAILED
                self._notify()
            return None
        if not self._is_active("history response"):
            return None
        self.history = history
        self.history_state = LoadState.LOADED
        self._notify()
        return history

    # ── Mutations ──

    async def add_test(self, data: TestInput) -> bool:
        return await self._mutate(
            "add test", lambda: self._repository.create_test(self.patient_id, data)
        )

    async def update_test(self, test_id: str, data: TestInput) -> bool:
        return await self._mutate(
            "update test",
            lambda: self._repository.update_test(self.patient_id, test_id, data),
        )

    async def delete_test(self, test_id: str) -> bool:
        return await self._mutate(
            "delete test",
            lambda: self._repository.delete_test(self.patient_id, test_id),
        )

    async def update_patient(self, data: PatientInput) -> bool:
        return await self._mutate(
            "update patient",
            lambda: self._repository.update_patient(self.patient_id, data),
        )

    async def delete_patient(self) -> bool:
        """Delete this patient.  On success the controller closes itself."""
        if not self._is_active("delete patient"):
            return False
        try:
            await self._repository.delete_patient(self.patient_id)
        except GatewayError as exc:
            if self._surface(exc, "delete patient") is not None:
                self._notify()
            return False
        self.close()
        return True

    # ── Internal ──

    async def _load_patient(self) -> None:
        self.patient_state = LoadState.LOADING
        self.patient_error = None
        self._notify()
        try:
            record = await self._repository.refresh_patient(self.patient_id)
        except GatewayError as exc:
            if self._surface(exc, "load patient") is not None:
                self.patient_state = LoadState.FAILED
                self.patient_error = exc
                self._notify()
            return
        if not self._is_active("patient response"):
            return
        previous = self.patient
        if previous is not None and previous.critical_condition != record.critical_condition:
            self.logger.info(
                "Patient %s critical condition changed: %s -> %s",
                self.patient_id, previous.critical_condition, record.critical_condition,
            )
        self.patient = record
        self.patient_state = LoadState.LOADED
        self._notify()

    async def _load_tests(self) -> None:
        self.tests_state = LoadState.LOADING
        self.tests_error = None
        self._notify()
        try:
            tests = await self._repository.load_tests(self.patient_id)
        except GatewayError as exc:
            if self._surface(exc, "load tests") is not None:
                self.tests_state = LoadState.FAILED
                self.tests_error = exc
                self._notify()
            return
        if not self._is_active("tests response"):
            return
        self.tests = tests
        self.tests_state = LoadState.LOADED
        self._notify()

    async def _mutate(self, action: str, operation: Mutation) -> bool:
        if not self._is_active(action):
            return False
        try:
            result = await operation()
        except GatewayError as exc:
            if self._surface(exc, action) is not None:
                self._notify()
            return False
        if result.reload_required:
            await self.reload()
        return True
