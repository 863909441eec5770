import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tiervote.database import init_db
from tiervote.routes import bracket, sessions, tier_votes

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Tier Vote API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions.router, prefix="/api", tags=["sessions"])
app.include_router(bracket.router, prefix="/api", tags=["bracket"])
app.include_router(tier_votes.router, prefix="/api", tags=["votes"])


@app.on_event("startup")
def on_startup():
    init_db()
    route_count = sum(1 for r in app.routes if getattr(r, "path", None))
    logger.info("Tier Vote API started with %d routes", route_count)


@app.get("/api/health")
def health_check():
    return {"app_name": "Tier Vote API", "status": "healthy"}
