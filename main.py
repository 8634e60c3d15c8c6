import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from config import API_TITLE, API_VERSION, HOST, LOG_LEVEL, PORT, Settings, get_settings
from database import Database
from errors import register_exception_handlers
from routers import auth_router, facilities_router, patient_router, users_router
from tokens import TokenService

logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")


def create_app(settings: Optional[Settings] = None, tokens: Optional[TokenService] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db.init(settings.superadmin_email, settings.superadmin_password)
        yield

    app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = Database(settings.database_path)
    app.state.tokens = tokens or TokenService.from_settings(settings)

    register_exception_handlers(app)

    # Include routers
    app.include_router(auth_router.router)
    app.include_router(users_router.router)
    app.include_router(facilities_router.router)
    app.include_router(patient_router.router)

    # Root endpoint
    @app.get("/")
    def root():
        return {
            "message": "Hospital Scope API",
            "docs": "/docs",
            "endpoints": {
                "login": "POST /auth/login",
                "refresh": "POST /auth/refresh",
                "current_user": "GET /auth/me",
                "register_patient": "POST /auth/register/patient",
                "create_staff": "POST /users",
                "update_status": "PATCH /users/{user_id}/status",
                "hospitals": "GET|POST /facilities/hospitals",
                "pharmacies": "GET|POST /facilities/pharmacies",
                "submit_vitals": "POST /patient/vitals",
                "vitals": "GET /patient/vitals",
                "alerts": "GET /patient/alerts",
            },
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=HOST, port=PORT, reload=True)
