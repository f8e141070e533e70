"""FastAPI application entry - windmill-ci daemon."""

from contextlib import asynccontextmanager

from . import config  # noqa: F401 - load .env on startup
from fastapi import FastAPI

from .api.routes import router
from .services.daemon import abandon_all


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    abandon_all()


app = FastAPI(
    title="windmill-ci",
    description="Continuous build, test and deploy daemon",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)


@app.get("/")
async def root():
    return {"service": "windmill-ci", "docs": "/docs"}
