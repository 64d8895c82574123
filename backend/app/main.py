from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.routers import itinerary
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.services.route_service import build_planner


def create_app(settings=None, planner=None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Trip Planning Backend", version="1.0.0")

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.planner = planner or build_planner(settings)

    # Include Routers
    app.include_router(itinerary.router, prefix="/api", tags=["Itineraries"])

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the Trip Planning Backend API"}

    return app


app = create_app()
