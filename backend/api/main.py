"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import postcards  # noqa: E402

# Create app
app = FastAPI(
    title="Planet Postcard Forge API",
    description="Satellite postcards for any place name (NASA GIBS x Wikipedia/Wikidata)",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Include routers
app.include_router(postcards.router, prefix="/postcards", tags=["postcards"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Planet Postcard Forge API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
