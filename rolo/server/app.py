from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import rolo
from rolo.config import get_config
from rolo.logging import configure_logging
from rolo.server.routers.search import router as search_router
from rolo.server.runtime import get_service_async, reset_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    config = get_config()
    configure_logging(config.log_level, config.log_json)
    await get_service_async()
    yield
    await reset_service()


app = FastAPI(
    title="rolo",
    description="Personal contact search - API server",
    version=rolo.__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
