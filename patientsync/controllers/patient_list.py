"""
Patient List Controller — filtered, ordered view over the patient collection.

State machine:

    IDLE ──refresh──▶ LOADING ──▶ LOADED
                         │          │
                         ▼          └──refresh──▶ LOADING
                       FAILED ──retry──▶ LOADING

Filtering (name search, critical-only) is pure and synchronous over the last
loaded collection; it never touches the network.  The visible order is the
server's response order.
"""

from __future__ import annotations

import logging
from typing import Optional

from patientsync.client.errors import GatewayError
from patientsync.controllers.base import BaseController, ChangeListener, LoadState
from patientsync.schemas.patient import Patient, PatientInput
from patientsync.store.repository import MutationResult, PatientSnapshot, RecordRepository


class PatientListController(BaseController):
    """Backs the patient list screen."""

    logger = logging.getLogger("patientsync.controllers.list")
    load_action = "load patients"

    def __init__(
        self,
        repository: RecordRepository,
        *,
        on_change: Optional[ChangeListener] = None,
    ) -> None:
        super().__init__(repository, on_change=on_change)
        self.state = LoadState.IDLE
        self.error: Optional[GatewayError] = None
        self._patients: PatientSnapshot = ()
        self._visible: list[Patient] = []
        self._query = ""
        self._critical_only = False

    # ── Derived view ──

    @property
    def patients(self) -> PatientSnapshot:
        """Last loaded collection, unfiltered."""
        return self._patients

    @property
    def visible(self) -> list[Patient]:
        return list(self._visible)

    @property
    def query(self) -> str:
        return self._query

    @property
    def critical_only(self) -> bool:
        return self._critical_only

    @property
    def is_empty(self) -> bool:
        return self.state == LoadState.LOADED and not self._visible

    def set_filter(self, query: str) -> list[Patient]:
        """Case-insensitive name search over the loaded list.  No network."""
        self._query = query or ""
        self._recompute()
        self._notify()
        return self.visible

    def set_critical_only(self, critical_only: bool) -> list[Patient]:
        self._critical_only = critical_only
        self._recompute()
        self._notify()
        return self.visible

    # ── Loading ──

    async def refresh(self) -> LoadState:
        """LOADING, then LOADED with the new collection or FAILED with the error."""
        if not self._is_active("refresh"):
            return self.state

        self.state = LoadState.LOADING
        self.error = None
        self._notify()

        try:
            snapshot = await self._fetch()
        except GatewayError as exc:
            if self._surface(exc, self.load_action) is None:
                return self.state
            self.state = LoadState.FAILED
            self.error = exc
            self._notify()
            return self.state

        if not self._is_active("patient list response"):
            return self.state

        self._patients = snapshot
        self.state = LoadState.LOADED
        self._recompute()
        self.logger.debug(
            "%s: %d loaded, %d visible",
            type(self).__name__, len(self._patients), len(self._visible),
        )
        self._notify()
        return self.state

    async def retry(self) -> LoadState:
        return await self.refresh()

    # ── Mutations ──

    async def remove(self, patient_id: str) -> bool:
        """
        Delete a patient, then reload the list.

        If the delete fails the current list and LOADED state stay exactly
        as they were and a notice is surfaced instead.
        """
        if not self._is_active("remove"):
            return False
        try:
            await self._repository.delete_patient(patient_id)
        except GatewayError as exc:
            if self._surface(exc, "delete patient") is not None:
                self._notify()
            return False

        await self.refresh()
        return True

    async def add_patient(self, data: PatientInput) -> Optional[MutationResult]:
        return await self._mutate_and_refresh(
            "add patient", lambda: self._repository.create_patient(data)
        )

    async def update_patient(
        self, patient_id: str, data: PatientInput
    ) -> Optional[MutationResult]:
        return await self._mutate_and_refresh(
            "update patient", lambda: self._repository.update_patient(patient_id, data)
        )

    # ── Internal ──

    async def _fetch(self) -> PatientSnapshot:
        return await self._repository.load_patients()

    async def _mutate_and_refresh(self, action, operation) -> Optional[MutationResult]:
        if not self._is_active(action):
            return None
        try:
            result = await operation()
        except GatewayError as exc:
            if self._surface(exc, action) is not None:
                self._notify()
            return None
        if result.reload_required:
            await self.refresh()
        return result

    def _recompute(self) -> None:
        needle = self._query.strip().casefold()
        self._visible = [
            patient
            for patient in self._patients
            if (not needle or needle in patient.name.casefold())
            and (not self._critical_only or patient.critical_condition)
        ]


class CriticalPatientListController(PatientListController):
    """Same list behaviour, sourced from the server's critical-patient query."""

    load_action = "load critical patients"

    async def _fetch(self) -> PatientSnapshot:
        return await self._repository.load_critical_patients()
