import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from admin_mirror.config import settings
from admin_mirror.db import dispose_db, init_db
from admin_mirror.errors import StorageError, UpstreamUnavailable, ValidationError
from admin_mirror.routers import admin_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    logger.info('Mirror schema ready; upstream=%s', settings.api_base)
    try:
        yield
    finally:
        dispose_db()
        logger.info('Mirror storage released')


app = FastAPI(title='Admin Mirror', lifespan=lifespan)

app.include_router(admin_db.router)


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(_request: Request, exc: UpstreamUnavailable):
    logger.warning('%s', exc)
    return PlainTextResponse(exc.body or exc.fallback, status_code=502)


@app.exception_handler(ValidationError)
async def validation_error_handler(_request: Request, exc: ValidationError):
    return PlainTextResponse(str(exc), status_code=400)


@app.exception_handler(StorageError)
async def storage_error_handler(_request: Request, exc: StorageError):
    logger.error('%s', exc)
    return JSONResponse({'ok': False}, status_code=500)


@app.get('/admin-config')
def admin_config() -> dict:
    return {'apiBase': settings.api_base, 'orderBase': settings.order_base_resolved}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
