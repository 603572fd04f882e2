from __future__ import annotations

from typing import Any, Callable, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from .service import SimulatorService


def create_simulator_router(service_provider: Callable[[], SimulatorService]) -> APIRouter:
    router = APIRouter(prefix="/simulator", tags=["simulator"])

    def get_service() -> SimulatorService:
        return service_provider()

    @router.post("/start")
    async def start(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        return await service.start()

    @router.post("/pause")
    async def pause(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        return service.pause()

    @router.post("/resume")
    async def resume(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        return await service.resume()

    @router.post("/stop")
    async def stop(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        return service.stop()

    @router.post("/reset")
    async def reset(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        return service.reset()

    @router.get("/state")
    async def get_state(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        return service.state()

    @router.get("/persona")
    async def get_persona(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        return service.persona()

    @router.get("/events")
    async def get_events(service: SimulatorService = Depends(get_service)) -> List[Dict[str, Any]]:
        return service.drain_events()

    @router.get("/stats")
    async def get_stats(service: SimulatorService = Depends(get_service)) -> Dict[str, Any]:
        stats = service.stats()
        if stats is None:
            raise HTTPException(status_code=404, detail="Simulation has not finished yet")
        return stats

    return router
