"""
Remote Gateway — typed async wrapper around the hospital record API.

One coroutine per resource action.  The gateway is stateless: it sends the
request, classifies any failure into the taxonomy in ``errors``, decodes the
body into schema models and returns.  No caching, no retries, no awareness
of who is asking.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaError

from patientsync import settings
from patientsync.client.errors import DecodeError, NetworkError, error_for_status
from patientsync.schemas.history import PatientHistory
from patientsync.schemas.medical_test import MedicalTest, TestInput, TestUpdate
from patientsync.schemas.patient import Patient, PatientInput

logger = logging.getLogger("patientsync.gateway")

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class RemoteGateway:
    """
    Request/response client for the ``/api`` record service.

    Usage:
        async with RemoteGateway() as gateway:
            patients = await gateway.list_patients()

    Pass ``client`` to reuse an existing ``httpx.AsyncClient`` (its base_url
    must already point at the API root); the gateway then never closes it.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            url = (base_url or settings.API_BASE_URL).rstrip("/")
            self._client = httpx.AsyncClient(
                base_url=url,
                headers=JSON_HEADERS,
                timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT,
            )
            self._owns_client = True

    async def __aenter__(self) -> RemoteGateway:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Patients ──

    async def list_patients(self) -> list[Patient]:
        data = await self._request("GET", "/patients")
        return self._decode_list(Patient, data)

    async def list_critical_patients(self) -> list[Patient]:
        data = await self._request("GET", "/patients/critical")
        return self._decode_list(Patient, data)

    async def get_patient(self, patient_id: str) -> Patient:
        data = await self._request("GET", f"/patients/{_quote(patient_id)}")
        return self._decode(Patient, data)

    async def create_patient(self, patient: PatientInput) -> Patient:
        data = await self._request("POST", "/patients", json=patient.to_payload())
        return self._decode(Patient, data)

    async def update_patient(
        self, patient_id: str, patient: PatientInput
    ) -> Optional[Patient]:
        data = await self._request(
            "PUT", f"/patients/{_quote(patient_id)}", json=patient.to_payload()
        )
        return self._decode_optional(Patient, data)

    async def delete_patient(self, patient_id: str) -> None:
        await self._request("DELETE", f"/patients/{_quote(patient_id)}")

    async def get_history(self, patient_id: str) -> PatientHistory:
        data = await self._request("GET", f"/patients/{_quote(patient_id)}/history")
        return self._decode(PatientHistory, data)

    # ── Tests ──

    async def list_tests(self, patient_id: str) -> list[MedicalTest]:
        data = await self._request("GET", f"/patients/{_quote(patient_id)}/tests")
        return self._decode_list(MedicalTest, data)

    async def get_test(self, patient_id: str, test_id: str) -> MedicalTest:
        data = await self._request("GET", _test_path(patient_id, test_id))
        return self._decode(MedicalTest, data)

    async def create_test(self, patient_id: str, test: TestInput) -> MedicalTest:
        data = await self._request(
            "POST", f"/patients/{_quote(patient_id)}/tests", json=test.to_payload()
        )
        return self._decode(MedicalTest, data)

    async def update_test(
        self, patient_id: str, test_id: str, test: TestUpdate
    ) -> Optional[MedicalTest]:
        data = await self._request(
            "PUT", _test_path(patient_id, test_id), json=test.to_payload()
        )
        return self._decode_optional(MedicalTest, data)

    async def delete_test(self, patient_id: str, test_id: str) -> None:
        await self._request("DELETE", _test_path(patient_id, test_id))

    # ── Internal ──

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> Any:
        """Send one request.  Returns the decoded JSON body, or None if empty."""
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(
                method, path, json=json, headers=JSON_HEADERS
            )
        except httpx.HTTPError as exc:
            # includes undecodable bodies, not just transport failures
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(
                f"{method} {path} failed: {exc}", url=path
            ) from exc

        if not response.is_success:
            error_cls = error_for_status(response.status_code)
            detail = _error_detail(response)
            logger.warning(
                "%s %s returned HTTP %d (%s)",
                method, path, response.status_code, error_cls.__name__,
            )
            raise error_cls(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                url=path,
                detail=detail,
            )

        if not response.content or response.status_code == 204:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
                url=path,
            ) from exc

    @staticmethod
    def _decode(model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except SchemaError as exc:
            raise DecodeError(
                f"Malformed {model.__name__} payload: {exc.error_count()} error(s)",
                detail=str(exc),
            ) from exc

    @classmethod
    def _decode_optional(cls, model: type[ModelT], data: Any) -> Optional[ModelT]:
        if data is None:
            return None
        return cls._decode(model, data)

    @staticmethod
    def _decode_list(model: type[ModelT], data: Any) -> list[ModelT]:
        try:
            return TypeAdapter(list[model]).validate_python(data)
        except SchemaError as exc:
            raise DecodeError(
                f"Malformed {model.__name__} list payload: {exc.error_count()} error(s)",
                detail=str(exc),
            ) from exc


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human detail from an error body ({"error"|"message"|"detail"})."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return ""


def _quote(identifier: str) -> str:
    """Quote an id as exactly one path segment."""
    return quote(str(identifier), safe="")


def _test_path(patient_id: str, test_id: str) -> str:
    return f"/patients/{_quote(patient_id)}/tests/{_quote(test_id)}"
