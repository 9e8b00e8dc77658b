import hashlib
import os
import time
from typing import Any, Dict

from fastapi import HTTPException, Request
from starlette.responses import Response

from storefront.utils.security import COOKIE_NAME


def _user_key_from_request(req: Request) -> str:
    # Priorité: session cookie (hashé) puis IP
    token = req.cookies.get(COOKIE_NAME)
    path = req.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request):
        # Fallback mémoire (DEV) si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _user_key_from_request(request)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _user_key_from_request(req)

        try:
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, Response())
        except HTTPException:
            raise
        except Exception:
            # Redis indisponible: pas de 429 en prod; en dev, activer LOCAL_RATE_LIMIT_FALLBACK=1
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    from fastapi_limiter import FastAPILimiter

    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": bool(enabled) if enabled is not None else None,
        "ready": ready,
        "backend": "redis" if ready else None,
    }
