import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cornhole_bracket.database import init_db
from cornhole_bracket.routes import runtime, tournaments

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cornhole Bracket API")

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

# Tournament controls, bracket generation and status
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
# Match lifecycle and per-team views
app.include_router(runtime.router, prefix="/api", tags=["runtime"])


@app.on_event("startup")
def on_startup():
    init_db()

    route_count = 0
    for r in app.routes:
        methods = getattr(r, "methods", None)
        path = getattr(r, "path", None)
        if path:
            methods_str = ", ".join(sorted(methods)) if methods else "N/A"
            logger.debug("%-20s %s", methods_str, path)
            route_count += 1
    logger.info("Registered %d routes", route_count)


@app.get("/api/health")
def health_check():
    return {"app_name": "Cornhole Bracket API", "status": "healthy"}
