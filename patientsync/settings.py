"""
Centralized configuration for PatientSync.
Env-based constants, loaded from .env when present.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _float_or_none(raw):
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


# --- Remote API ---
# 10.0.2.2 is the host loopback as seen from the Android emulator
API_BASE_URL = os.getenv("PATIENTSYNC_API_URL", "http://10.0.2.2:5000/api")

# Seconds; unset means requests never time out
REQUEST_TIMEOUT = _float_or_none(os.getenv("PATIENTSYNC_TIMEOUT"))

# --- Development server ---
DEV_SERVER_PORT = int(os.getenv("PORT", "5000"))

# --- Logging ---
LOG_LEVEL = os.getenv("PATIENTSYNC_LOG_LEVEL", "INFO")
