import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from viewtuber.config import settings
from viewtuber.db.mongo import db, ensure_indexes
from viewtuber.errors import CollabError
from viewtuber.auth.routes import router as auth_router
from viewtuber.api.routes.projects import router as projects_router
from viewtuber.api.routes.invites import router as invites_router
from viewtuber.api.routes.editors import router as editors_router
from viewtuber.api.routes.videos import router as videos_router
from viewtuber.api.routes.youtube import router as youtube_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Viewtuber Collaboration API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CollabError)
async def collab_error_handler(request: Request, exc: CollabError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.kind, "message": exc.message},
    )


@app.on_event("startup")
def _startup() -> None:
    ensure_indexes()


@app.get("/health")
def health():
    db.command("ping")
    return {"mongo": "ok", "env": settings.app_env}


# Router registration -------------------------------------------------------
app.include_router(auth_router)
app.include_router(projects_router)
app.include_router(invites_router)
app.include_router(editors_router)
app.include_router(videos_router)
app.include_router(youtube_router)


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("viewtuber.main:app", host="0.0.0.0", port=port)
