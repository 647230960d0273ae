# app/core/config.py
"""
This file holds *global* app settings (things that are not per-variant).

Think of it like the "settings panel" for the backend:
- MongoDB connection details and timeouts
- Currency used for payouts
- How many times a pricing write retries after losing a version race

Per-variant deduction overrides live in Mongo (pricing_records), and the
global default deductions live in Mongo too (system_settings) so admins can
edit them without a redeploy.
"""
from __future__ import annotations

import os
from dotenv import load_dotenv
from pydantic import BaseModel

# Loads environment variables from a local ".env" file (if present).
load_dotenv()


class AppConfig(BaseModel):
    """
    AppConfig is a structured container for environment-based settings.

    Environment variables override the defaults below.
    """

    # -----------------------------
    # General app settings
    # -----------------------------
    app_name: str = "Device Valuation Backend"
    environment: str = os.getenv("APP_ENV", "dev")  # dev / staging / prod
    debug: bool = os.getenv("DEBUG", "true").lower() == "true"

    # -----------------------------
    # MongoDB settings
    # -----------------------------
    mongo_uri: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    mongo_db: str = os.getenv("MONGO_DB", "device_valuation")

    # Upper bound for server selection / connect / socket waits (milliseconds).
    # A slow or missing Mongo surfaces as 503 storage_unavailable instead of hanging.
    mongo_timeout_ms: int = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

    # -----------------------------
    # Pricing
    # -----------------------------
    currency: str = os.getenv("CURRENCY", "INR")

    # Compare-and-set attempts for a single admin pricing edit.
    pricing_write_retries: int = int(os.getenv("PRICING_WRITE_RETRIES", "3"))


# Global singleton used throughout the app
config = AppConfig()
