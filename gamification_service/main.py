"""Gamification Service API - FastAPI with DynamoDB"""
import logging
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gamification_service import dynamo
from gamification_service.config import get_settings
from gamification_service.logic import listeners
from gamification_service.routers import gamification

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Gamification Service API",
    description="XP, levels, ranks, badges and weekly challenges for hotel operations staff",
    version=settings.VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

app.include_router(gamification.router, prefix="/api/v1")

app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


@app.get("/")
def root():
    return {"service": "gamification-service", "status": "running", "version": settings.VERSION}


@app.get("/health")
def health():
    try:
        dynamo.db_client.stats_table.meta.client.describe_table(TableName=settings.DYNAMODB_STATS_TABLE)
        return {"status": "healthy", "dynamodb": "connected", "gamificationEnabled": settings.GAMIFICATION_ENABLED}
    except Exception as e:
        logger.warning(f"Health check DynamoDB connection failed: {str(e)}")
        # Still healthy for load balancer checks, DynamoDB may come back
        return {"status": "healthy", "dynamodb": "unavailable", "warning": str(e)[:100]}


# ============= OPERATIONAL EVENTS =============
# Emitted by the hotel-ops modules. Always 200; the body carries success/error.

@app.post("/api/v1/events/incident-created")
def event_incident_created(event: Dict[str, Any]):
    """
    Payload:
    {
        "userId": "staff-42",
        "timestamp": "2025-03-14T09:30:00Z",
        "eventId": "incident-981-created",
        "severity": "critical"
    }
    """
    return listeners.on_incident_created(event)


@app.post("/api/v1/events/incident-resolved")
def event_incident_resolved(event: Dict[str, Any]):
    """
    Payload:
    {
        "userId": "staff-42",
        "timestamp": "2025-03-14T11:00:00Z",
        "eventId": "incident-981-resolved",
        "severity": "high",
        "resolutionTime": 1.5
    }
    """
    return listeners.on_incident_resolved(event)


@app.post("/api/v1/events/maintenance-created")
def event_maintenance_created(event: Dict[str, Any]):
    return listeners.on_maintenance_created(event)


@app.post("/api/v1/events/maintenance-completed")
def event_maintenance_completed(event: Dict[str, Any]):
    """Payload adds beforeSchedule (bool, optional)"""
    return listeners.on_maintenance_completed(event)


@app.post("/api/v1/events/quality-visit-logged")
def event_quality_visit_logged(event: Dict[str, Any]):
    """
    Payload:
    {
        "userId": "staff-42",
        "timestamp": "2025-03-14T15:00:00Z",
        "eventId": "visit-311",
        "score": 94
    }
    """
    return listeners.on_quality_visit_logged(event)


@app.post("/api/v1/events/lost-item-registered")
def event_lost_item_registered(event: Dict[str, Any]):
    return listeners.on_lost_item_registered(event)


@app.post("/api/v1/events/lost-item-returned")
def event_lost_item_returned(event: Dict[str, Any]):
    return listeners.on_lost_item_returned(event)


@app.post("/api/v1/events/user-login")
def event_user_login(event: Dict[str, Any]):
    return listeners.on_user_login(event)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gamification_service.main:app", host="0.0.0.0", port=8000, reload=settings.ENVIRONMENT == "local")
