"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Initialise FastAPILimiter (Redis).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
- À l'arrêt: détruit les checkouts encore actifs et les projections de session.
"""
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront.checkout.registry import registry
from storefront.state.sessions import sessions


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    r = None
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
    else:
        try:
            redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
            r = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
            await FastAPILimiter.init(r)
            app.state.rate_limit_enabled = True
            logger.info("Rate limiting enabled")
        except Exception as e:
            if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
                app.state.rate_limit_enabled = True
                logger.warning(f"Rate limiting falling back to local in-memory due to init error: {e}")
            else:
                app.state.rate_limit_enabled = False
                logger.warning(f"Rate limiting disabled due to init error: {e}")

    yield

    if len(registry):
        logger.info(f"Destroying {len(registry)} active checkout(s)")
    registry.clear()
    sessions.clear()
    if r is not None:
        await r.aclose()
