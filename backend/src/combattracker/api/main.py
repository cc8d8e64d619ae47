from contextlib import asynccontextmanager

from fastapi import FastAPI

from combattracker.api.error_handlers import register_error_handlers
from combattracker.api.routers.encounter_runtime import router as encounter_runtime_router
from combattracker.api.routers.encounters import router as encounters_router
from combattracker.config import get_settings
from combattracker.db.init_db import init_db
from combattracker.observability import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db()
    yield


app = FastAPI(title=get_settings().app_title, lifespan=lifespan)

register_error_handlers(app)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(encounters_router)
app.include_router(encounter_runtime_router)
