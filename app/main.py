from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from app.api.deps import get_block_sweeper
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.errors import ServiceError
from app.core.events import event_bus
from app.core.logging import configure_logging
from app.db.init_db import init_db
from app.services.session_events import register_session_listeners

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    unsubscribe = register_session_listeners(event_bus)
    sweeper = get_block_sweeper() if settings.BLOCK_SWEEP_ENABLED else None
    if sweeper is not None:
        await sweeper.start()
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()
        unsubscribe()
        event_bus.shutdown(wait=False)

app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG, lifespan=lifespan)

allow_origins = settings.CORS_ORIGINS
allow_credentials = '*' not in allow_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(ServiceError)
async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        'service_error (method: {} / path: {} / status: {} / code: {} / message: {})',
        request.method,
        request.url.path,
        exc.status_code,
        exc.error_code,
        exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={'detail': exc.message, 'code': exc.error_code},
    )


app.include_router(api_router)
