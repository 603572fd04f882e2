from fastapi import FastAPI
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from pathlib import Path
from typing import Optional
import logging

from src.core.settings import load_settings
from src.simulator.router import create_simulator_router
from src.simulator.service import SimulatorService

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(title="SofIA Simulator")

_service: Optional[SimulatorService] = None


def get_simulator_service() -> SimulatorService:
    global _service
    if _service is None:
        _service = SimulatorService(load_settings())
    return _service


@app.get("/")
async def root():
    return {"message": "SofIA simulator running"}


app.include_router(create_simulator_router(get_simulator_service))

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("shutdown")
async def shutdown_simulator():
    if _service is not None:
        await _service.shutdown()
        logger.info("Conversation memory flushed on shutdown")
