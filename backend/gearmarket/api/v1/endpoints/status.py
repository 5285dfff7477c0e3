"""
Status and health check endpoints.

WHAT: Health monitoring for the database and the expiration sweeper
WHY: Quick diagnostics for frontend and ops
HOW: FastAPI endpoint calling database ping
"""

from fastapi import APIRouter, Request

from ....core.database import ping_database

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Overall application health check.

    WHAT: Database status plus app metadata
    WHY: Ops and monitoring tools need simple health endpoint
    HOW: Ping the engine stored on app.state

    Returns:
        JSON with overall health status
    """
    app_settings = request.app.state.settings
    db_status = ping_database(request.app.state.db_engine)
    sweeper = request.app.state.expiration_sweeper

    return {
        "status": "healthy" if db_status["available"] else "degraded",
        "version": app_settings.APP_VERSION,
        "app_name": app_settings.APP_NAME,
        "components": {
            "database": {
                "available": db_status["available"]
            },
            "expiration_sweeper": {
                "enabled": app_settings.OFFER_SWEEP_ENABLED,
                "running": sweeper.running if sweeper else False
            }
        }
    }
