"""
Tests for the Patient Detail Controller.

Tests cover:
  - Concurrent, independent loading of header and tests
  - Partial failure never clears the other half
  - Every mutation re-fetches both halves (critical flag follows the server)
  - Failed mutations surface a notice and skip the reload
  - Teardown discards late responses
"""

import asyncio
from datetime import datetime, timezone

import pytest

from patientsync.client.errors import NetworkError, ServerError, ValidationError
from patientsync.controllers.base import LoadState
from patientsync.controllers.patient_detail import PatientDetailController
from patientsync.schemas.medical_test import MedicalTest, TestInput
from patientsync.schemas.patient import Patient, PatientInput


def _patient(critical: bool = False, age: int = 40) -> Patient:
    return Patient(id="p1", name="John Doe", age=age, gender="male", critical_condition=critical)


def _test(tid: str, value: str = "72") -> MedicalTest:
    return MedicalTest(
        id=tid,
        patient_id="p1",
        date=datetime(2025, 2, 25, tzinfo=timezone.utc),
        type="Heartbeat Rate",
        value=value,
    )


@pytest.fixture
def detail(repository):
    return PatientDetailController(repository, "p1")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Opening
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestOpen:

    @pytest.mark.asyncio
    async def test_open_loads_both(self, detail, gateway):
        gateway.get_patient.return_value = _patient()
        gateway.list_tests.return_value = [_test("t1"), _test("t2")]

        await detail.open()

        assert detail.ready is True
        assert detail.patient == _patient()
        assert [t.id for t in detail.tests] == ["t1", "t2"]

    @pytest.mark.asyncio
    async def test_borrowed_header_renders_before_load(self, repository, gateway):
        borrowed = _patient()
        detail = PatientDetailController(repository, "p1", patient=borrowed)
        assert detail.patient is borrowed
        assert detail.patient_state == LoadState.IDLE

    @pytest.mark.asyncio
    async def test_loads_run_concurrently_and_either_may_finish_first(self, detail, gateway):
        loop = asyncio.get_running_loop()
        patient_response = loop.create_future()
        tests_response = loop.create_future()

        async def get_patient(patient_id):
            return await patient_response

        async def list_tests(patient_id):
            return await tests_response

        gateway.get_patient.side_effect = get_patient
        gateway.list_tests.side_effect = list_tests

        task = asyncio.create_task(detail.open())
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        # both requests are in flight at once
        assert detail.patient_state == LoadState.LOADING
        assert detail.tests_state == LoadState.LOADING

        tests_response.set_result([_test("t1")])
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert detail.tests_state == LoadState.LOADED
        assert detail.patient_state == LoadState.LOADING

        patient_response.set_result(_patient())
        await task
        assert detail.ready is True

    @pytest.mark.asyncio
    async def test_tests_failure_keeps_header(self, detail, gateway):
        gateway.get_patient.return_value = _patient()
        gateway.list_tests.side_effect = ServerError("boom", status_code=500)

        await detail.open()

        assert detail.patient_state == LoadState.LOADED
        assert detail.patient == _patient()
        assert detail.tests_state == LoadState.FAILED
        assert isinstance(detail.tests_error, ServerError)
        assert detail.last_notice.message.startswith("Failed to load tests.")

    @pytest.mark.asyncio
    async def test_header_failure_keeps_tests(self, detail, gateway):
        gateway.get_patient.side_effect = NetworkError("down")
        gateway.list_tests.return_value = [_test("t1")]

        await detail.open()

        assert detail.tests_state == LoadState.LOADED
        assert [t.id for t in detail.tests] == ["t1"]
        assert detail.patient_state == LoadState.FAILED

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_previous_tests(self, detail, gateway):
        gateway.get_patient.return_value = _patient()
        gateway.list_tests.side_effect = [[_test("t1")], NetworkError("down")]

        await detail.open()
        await detail.reload()

        assert detail.tests_state == LoadState.FAILED
        assert [t.id for t in detail.tests] == ["t1"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Mutations and the critical flag
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestReconciliation:

    @pytest.mark.asyncio
    async def test_add_test_reloads_and_shows_server_critical_flag(self, detail, gateway):
        gateway.get_patient.side_effect = [_patient(critical=False), _patient(critical=True)]
        gateway.list_tests.side_effect = [[], [_test("t1", value="150")]]
        gateway.create_test.return_value = _test("t1", value="150")
        await detail.open()
        assert detail.critical is False

        ok = await detail.add_test(TestInput(type="Heartbeat Rate", value="150"))

        assert ok is True
        assert detail.critical is True
        assert [t.id for t in detail.tests] == ["t1"]
        assert gateway.get_patient.await_count == 2
        assert gateway.list_tests.await_count == 2

    @pytest.mark.asyncio
    async def test_delete_test_reloads_both(self, detail, gateway):
        gateway.get_patient.side_effect = [_patient(critical=True), _patient(critical=False)]
        gateway.list_tests.side_effect = [[_test("t1", value="150")], []]
        await detail.open()

        assert await detail.delete_test("t1") is True

        gateway.delete_test.assert_awaited_once_with("p1", "t1")
        assert detail.critical is False
        assert detail.tests == ()

    @pytest.mark.asyncio
    async def test_update_test_reloads_both(self, detail, gateway):
        gateway.get_patient.return_value = _patient()
        gateway.list_tests.side_effect = [[_test("t1")], [_test("t1", value="80")]]
        await detail.open()

        assert await detail.update_test("t1", TestInput(type="Heartbeat Rate", value="80")) is True

        sent = gateway.update_test.await_args.args[2]
        assert sent.date == datetime(2025, 2, 25, tzinfo=timezone.utc)
        assert detail.tests[0].value == "80"
        assert gateway.get_patient.await_count == 2

    @pytest.mark.asyncio
    async def test_update_patient_reloads_both(self, detail, gateway):
        gateway.get_patient.side_effect = [_patient(age=40), _patient(age=41)]
        gateway.list_tests.return_value = []
        await detail.open()

        ok = await detail.update_patient(PatientInput(name="John Doe", age=41, gender="male"))

        assert ok is True
        assert detail.patient.age == 41
        assert gateway.list_tests.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_mutation_surfaces_and_skips_reload(self, detail, gateway):
        gateway.get_patient.return_value = _patient()
        gateway.list_tests.return_value = [_test("t1")]
        await detail.open()
        gateway.create_test.side_effect = ValidationError(
            "rejected", status_code=400, detail="value out of range"
        )

        ok = await detail.add_test(TestInput(type="Heartbeat Rate", value="72"))

        assert ok is False
        assert gateway.get_patient.await_count == 1
        notice = detail.last_notice
        assert notice.retryable is False
        assert "value out of range" in notice.message
        assert [t.id for t in detail.tests] == ["t1"]

    @pytest.mark.asyncio
    async def test_delete_patient_closes(self, detail, gateway):
        assert await detail.delete_patient() is True
        gateway.delete_patient.assert_awaited_once_with("p1")
        assert detail.active is False

    @pytest.mark.asyncio
    async def test_delete_patient_failure_stays_open(self, detail, gateway):
        gateway.delete_patient.side_effect = ServerError("boom", status_code=500)
        assert await detail.delete_patient() is False
        assert detail.active is True
        assert detail.last_notice.retryable is True


class TestHistory:

    @pytest.mark.asyncio
    async def test_load_history(self, detail, gateway):
        gateway.get_history.return_value = "history"
        assert await detail.load_history() == "history"
        assert detail.history_state == LoadState.LOADED

    @pytest.mark.asyncio
    async def test_history_failure(self, detail, gateway):
        gateway.get_history.side_effect = NetworkError("down")
        assert await detail.load_history() is None
        assert detail.history_state == LoadState.FAILED


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Teardown
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestTeardown:

    @pytest.mark.asyncio
    async def test_late_responses_discarded(self, detail, gateway):
        loop = asyncio.get_running_loop()
        patient_response = loop.create_future()

        async def get_patient(patient_id):
            return await patient_response

        gateway.get_patient.side_effect = get_patient
        gateway.list_tests.return_value = []

        task = asyncio.create_task(detail.open())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        detail.close()
        patient_response.set_result(_patient(critical=True))
        await task

        assert detail.patient is None
        assert detail.critical is False

    @pytest.mark.asyncio
    async def test_closed_controller_rejects_mutation(self, detail, gateway):
        detail.close()
        assert await detail.add_test(TestInput(type="Heartbeat Rate", value="72")) is False
        gateway.create_test.assert_not_awaited()
