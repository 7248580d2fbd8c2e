"""Control plane routers."""

from fastapi import APIRouter

from . import autostart, challenge, config, daemon, earnings, pins, status

router = APIRouter()
router.include_router(status.router, tags=["status"])
router.include_router(config.router, tags=["config"])
router.include_router(pins.router, tags=["pins"])
router.include_router(earnings.router, tags=["earnings"])
router.include_router(challenge.router, tags=["challenge"])
router.include_router(autostart.router, tags=["autostart"])
router.include_router(daemon.router, tags=["daemon"])

__all__ = ["router"]
