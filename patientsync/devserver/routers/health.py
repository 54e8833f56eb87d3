from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/")
async def root():
    return {
        "status": "PatientSync development API is running",
        "endpoints": {
            "patients": "/api/patients",
            "critical": "/api/patients/critical",
            "tests": "/api/patients/{id}/tests",
            "history": "/api/patients/{id}/history",
        },
    }


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    store = request.app.state.store
    return {
        "status": "healthy",
        "service": "patientsync-devserver",
        "patients": len(store.list_patients()),
    }
