"""
backend/engageperfect/main.py

FastAPI Entrypoint.
Serves the EngagePerfect post-creation backend.

Responsibilities:
- Initialize FastAPI app
- Register routers (upload, sessions, captions, analyze, posts)
- Setup middleware (CORS, logging)
- Health check endpoint
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from engageperfect.core.config import settings
from engageperfect.core.logger import setup_logger
from engageperfect.routes import analyze, captions, posts, sessions, upload

setup_logger()

app = FastAPI(
    title="EngagePerfect Backend",
    description="API for media upload, post settings and AI captions",
    version="0.1.0"
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": f"{settings.PROJECT_NAME} Backend is running"}


app.include_router(upload.router)
app.include_router(sessions.router)
app.include_router(captions.router)
app.include_router(analyze.router)
app.include_router(posts.router)
