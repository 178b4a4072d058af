import os

from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")

# Zone used when a user's timezone is missing or does not resolve
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")
DEFAULT_REMINDER_TIME = os.getenv("DEFAULT_REMINDER_TIME", "23:00")
DEFAULT_DAILY_PROBLEM_LIMIT = int(os.getenv("DEFAULT_DAILY_PROBLEM_LIMIT", "2"))

FREEZE_COST_GEMS = int(os.getenv("FREEZE_COST_GEMS", "50"))

LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "2.0"))
LOCK_RETRIES = int(os.getenv("LOCK_RETRIES", "3"))
LOCK_BACKOFF_SECONDS = float(os.getenv("LOCK_BACKOFF_SECONDS", "0.05"))

CRON_SECRET = os.getenv("CRON_SECRET", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
