import os

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # dotenv is optional for production, but useful locally

class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (broker, locks, idempotency marks) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    BROKER_VISIBILITY_TIMEOUT_SECONDS = int(os.environ.get("BROKER_VISIBILITY_TIMEOUT_SECONDS", "43200"))

    # --- Worker metrics (Prometheus) ---
    # Port for the Celery worker's /metrics server; unset disables it.
    WORKER_METRICS_PORT = int(os.environ["WORKER_METRICS_PORT"]) if os.environ.get("WORKER_METRICS_PORT") else None

    # --- Logging ---
    SERVICE_NAME = os.environ.get("SERVICE_NAME", "patient-outreach-server")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")  # "json" or "text"

    # --- Reminder scheduling ---
    REMINDER_LEAD_HOURS = int(os.environ.get("REMINDER_LEAD_HOURS", "24"))
    REMINDER_DEDUP_GRACE_SECONDS = int(os.environ.get("REMINDER_DEDUP_GRACE_SECONDS", "3600"))

    # --- Reminder dispatch ---
    REMINDER_LOCK_TTL_SECONDS = int(os.environ.get("REMINDER_LOCK_TTL_SECONDS", "60"))
    REMINDER_PROCESSED_TTL_SECONDS = int(os.environ.get("REMINDER_PROCESSED_TTL_SECONDS", "86400"))
    REMINDER_MAX_RETRIES = int(os.environ.get("REMINDER_MAX_RETRIES", "5"))
    REMINDER_RETRY_DELAY_SECONDS = int(os.environ.get("REMINDER_RETRY_DELAY_SECONDS", "30"))

    # --- Quiet hours and timezone ---
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "America/Los_Angeles")
    QUIET_HOURS_TIMEZONE = os.environ.get("QUIET_HOURS_TIMEZONE", DEFAULT_TIMEZONE)
    QUIET_HOURS_START = int(os.environ.get("QUIET_HOURS_START", "21"))
    QUIET_HOURS_END = int(os.environ.get("QUIET_HOURS_END", "8"))

settings = Settings()
