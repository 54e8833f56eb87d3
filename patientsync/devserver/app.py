"""
PatientSync Development API — Application Factory

An in-memory implementation of the hospital record API, for running the
client locally and for end-to-end tests.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from patientsync import settings
from patientsync.devserver.routers import health, patients
from patientsync.devserver.store import RecordStore

logger = logging.getLogger("patientsync.devserver")


async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    # The record service reports malformed bodies as 400, not FastAPI's 422
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ())[1:])}: {err.get('msg')}"
        for err in errors
    )
    logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message or "Invalid request"})


def create_app(store: RecordStore | None = None) -> FastAPI:
    """Build the app around ``store`` (a fresh empty one by default)."""
    app = FastAPI(title="PatientSync Development API")
    app.state.store = store or RecordStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _bad_request)

    app.include_router(health.router)
    app.include_router(patients.router)

    logger.info("Development API ready (%d patients)", len(app.state.store.list_patients()))
    return app


logging.basicConfig(level=settings.LOG_LEVEL)

app = create_app()
