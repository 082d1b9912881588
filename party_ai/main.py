"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from party_ai import __version__
from party_ai.config import get_settings
from party_ai.middleware.error_handler import setup_error_handlers
from party_ai.api.routes import decisions

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("party_ai")

app = FastAPI(
    title="Party AI",
    description="Tactical decision engine for AI-controlled party members",
    version=__version__,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug(f"[REQUEST] {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"[RESPONSE] {request.method} {request.url.path} -> {response.status_code}")
    return response


# CORS middleware for tooling frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_error_handlers(app, debug=settings.DEBUG)


@app.get("/")
async def root():
    """Service banner."""
    return {"status": "online", "service": "Party AI", "version": __version__}


@app.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "debug_mode": settings.DEBUG,
        "log_level": settings.LOG_LEVEL,
    }


app.include_router(decisions.router, prefix="/api/party-ai", tags=["party-ai"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("party_ai.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
