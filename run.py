"""
PatientSync Development API — Entry Point
"""
import platform
import uvicorn

from patientsync import settings

if __name__ == "__main__":
    port = settings.DEV_SERVER_PORT

    if platform.system() == "Windows":
        uvicorn.run("patientsync.devserver.app:app", host="0.0.0.0", port=port, log_level="info", loop="asyncio")
    else:
        uvicorn.run("patientsync.devserver.app:app", host="0.0.0.0", port=port, log_level="info")
