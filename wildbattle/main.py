import logging

from fastapi import FastAPI

from wildbattle.api.routes import router
from wildbattle.config import PROJECT_ROOT, load_dotenv_if_present, settings_from_env
from wildbattle.species.singleton import init_species

load_dotenv_if_present()
_settings = settings_from_env()

app = FastAPI(title="wildbattle", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=getattr(logging, _settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    catalog = init_species(project_root=PROJECT_ROOT, strict=_settings.strict_species)
    logger.info("species catalog loaded (%s species)", len(catalog))


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "wildbattle", "version": "0.1.0"}
