from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    OSRM_URL: str = os.getenv("OSRM_URL", "http://router.project-osrm.org")
    OSRM_PROFILE: str = os.getenv("OSRM_PROFILE", "driving")
    ROUTING_TIMEOUT_S: float = float(os.getenv("ROUTING_TIMEOUT_S", "15.0"))

    # Empty means no road graph is wired in: every nearest-node lookup misses.
    NODE_LOOKUP_URL: str = os.getenv("NODE_LOOKUP_URL", "")
    NODE_LOOKUP_TIMEOUT_S: float = float(os.getenv("NODE_LOOKUP_TIMEOUT_S", "2.0"))
    NODE_SEARCH_RADIUS_M: float = float(os.getenv("NODE_SEARCH_RADIUS_M", "50.0"))
    WAYPOINT_MATCH_TOLERANCE_M: float = float(os.getenv("WAYPOINT_MATCH_TOLERANCE_M", "10.0"))
    RESOLVER_CONCURRENCY: int = int(os.getenv("RESOLVER_CONCURRENCY", "4"))

    INSTRUCTION_LOCALE: str = os.getenv("INSTRUCTION_LOCALE", "fr")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "http://localhost:8080,http://localhost:5173,*")

    class Config:
        case_sensitive = True

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

@lru_cache()
def get_settings():
    return Settings()
