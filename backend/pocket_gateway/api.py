"""HTTP views over the gateway: status, cached data, reconfiguration."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .market.gateway import MarketGateway
from .market.models import Credentials

logger = logging.getLogger(__name__)

RECONNECTING_MESSAGE = "SSID recebido. Reconectando..."


def create_api_router(gateway: MarketGateway) -> APIRouter:
    """Read-only views of the cache plus ``POST /config``."""
    router = APIRouter(tags=["gateway"])

    @router.get("/")
    async def root() -> dict:
        return gateway.summary()

    @router.get("/status")
    async def status() -> dict:
        return gateway.status()

    @router.get("/candles")
    async def candles() -> dict:
        return {
            asset: [c.to_dict() for c in gateway.cache.get_candles(asset) or ()]
            for asset in gateway.cache.candle_assets()
        }

    @router.get("/prices")
    async def prices() -> dict:
        return {
            asset: gateway.cache.get_price(asset)
            for asset in gateway.cache.price_assets()
        }

    @router.get("/balance")
    @router.get("/saldo")
    async def balance():
        if not gateway.cache.has_balance:
            return JSONResponse(status_code=404, content={"error": "Balance not available yet"})
        return gateway.cache.balance

    @router.post("/config")
    async def config(request: Request):
        """Replace the session token and restart the upstream session."""
        try:
            body = await request.json()
        except ValueError:
            body = None
        ssid = body.get("ssid") if isinstance(body, dict) else None
        if not isinstance(ssid, str) or not ssid.strip():
            return JSONResponse(status_code=400, content={"error": "ssid is required"})

        logger.info("New SSID received over HTTP")
        await gateway.reconfigure(Credentials(ssid=ssid.strip()))
        return {"status": RECONNECTING_MESSAGE}

    return router
