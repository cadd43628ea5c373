import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from event_scheduler.config import CORS_ORIGINS, LOG_LEVEL
from event_scheduler.routes import matches, schedule

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Event Scheduler API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_origins.extend(CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(schedule.router, prefix="/api", tags=["schedule"])
app.include_router(matches.router, prefix="/api", tags=["matches"])


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify the service is up"""
    return {"app_name": "Event Scheduler API", "status": "healthy"}
