# main.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from starlette.middleware.cors import CORSMiddleware
import routes
from config.cache import close_redis, get_redis, redis_healthy
from config.settings import settings
from util.enums import Color, Environment, ErrorMessage
from util.logger import init_logger

logger = logging.getLogger(__name__)


async def _client_key(request: Request) -> str:
    # rate-limit bucket: first hop of X-Forwarded-For behind a trusted proxy
    if settings.TRUST_PROXY:
        fwd = request.headers.get("x-forwarded-for")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    init_logger()
    print(f"{Color.GREEN}HS classifier starting ({settings.APP_ENV}){Color.RESET}")
    try:
        redis = await get_redis()
        await FastAPILimiter.init(redis, identifier=_client_key)
    except Exception:
        logger.exception("startup.redis.failed url=%s", settings.REDIS_URL)
        raise
    logger.info(
        "startup.ready model=%s search=%s max_rounds=%d",
        settings.ANTHROPIC_MODEL,
        settings.KNOWLEDGE_SEARCH_MODE.value,
        settings.MAX_CLARIFICATION_ROUNDS,
    )
    print(f"{Color.BLUE}HS classifier ready{Color.RESET}")

    try:
        yield
    finally:
        try:
            await close_redis()
        except Exception as e:
            logger.warning("shutdown.redis.close_failed err=%s", e)
        print(f"{Color.RED}HS classifier stopped{Color.RESET}")


app: FastAPI = FastAPI(title="HS Classifier", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


@app.get("/healthz")
async def healthz():
    redis_ok = await redis_healthy()
    body = {"ok": redis_ok, "redis": "up" if redis_ok else "down"}
    return JSONResponse(status_code=200 if redis_ok else 503, content=body)


@app.exception_handler(429)
async def ratelimit_handler(request: Request, exc):
    retry = str(settings.RATE_LIMIT_SECONDS)
    return JSONResponse(
        status_code=429,
        content={
            "ok": False,
            "error": "rate_limited",
            "message": f"Too many requests. Try again in {retry}s.",
        },
        headers={"Retry-After": retry},
    )


@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception):
    logger.exception("request.unhandled path=%s", request.url.path)
    info = ErrorMessage.INTERNAL_ERROR.value
    return JSONResponse(
        status_code=info.http_status,
        content={"ok": False, "error": "internal_error", "message": info.message},
    )


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=reload)
