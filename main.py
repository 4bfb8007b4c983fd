# main.py

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pushalarm.db import database
from pushalarm.deps import load_server_settings
from pushalarm.push.push import limiter, router as push_router
from pushalarm.push.registry import registry
from pushalarm.push.scheduler import HeartbeatBroadcaster
from pushalarm.utils import configure_logging

configure_logging()
logger = logging.getLogger("uvicorn")

app = FastAPI(title="pushalarm - heartbeat server")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# rate-limiter dla /register
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def cors_headers(request: Request, call_next):
    logger.info("%s %s", request.method, request.url.path)
    if request.method == "OPTIONS":
        response = Response(status_code=204)
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # nieznana ścieżka albo metoda: zawsze 404
    if exc.status_code in (404, 405):
        return PlainTextResponse("Page not found", status_code=404)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
    )


app.include_router(push_router)

broadcaster: Optional[HeartbeatBroadcaster] = None


@app.on_event("startup")
async def startup():
    # bez kluczy VAPID nie wystartujemy (ConfigError)
    settings = load_server_settings()
    await database.connect()
    logger.info("✅ Connected to the database")
    global broadcaster
    broadcaster = HeartbeatBroadcaster(registry, settings)
    broadcaster.start()


@app.on_event("shutdown")
async def shutdown():
    global broadcaster
    if broadcaster:
        await broadcaster.stop()
        broadcaster = None
    await database.disconnect()
    logger.info("✅ Disconnected from the database")
