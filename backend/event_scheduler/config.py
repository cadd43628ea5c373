import os

from dotenv import load_dotenv

load_dotenv()

SCHEDULER_DEBUG = os.getenv("SCHEDULER_DEBUG", "false").lower() in ("true", "1", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if SCHEDULER_DEBUG else "INFO").upper()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

# Match timing defaults (minutes)
SET_MINUTES = int(os.getenv("SET_MINUTES", "20"))
REST_PER_SET_MINUTES = int(os.getenv("REST_PER_SET_MINUTES", "5"))
DEFAULT_MATCH_MINUTES = int(os.getenv("DEFAULT_MATCH_MINUTES", "60"))

# Packer search granularity and open-ended horizon
SLOT_GRANULARITY_MINUTES = int(os.getenv("SLOT_GRANULARITY_MINUTES", "5"))
OPEN_ENDED_WEEKS = int(os.getenv("OPEN_ENDED_WEEKS", "52"))
