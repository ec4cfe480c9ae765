from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from schoolcomms.app_state import get_context
from schoolcomms.config import settings
from schoolcomms.db import Base
from schoolcomms.route_logging import EndpointNameRoute
from schoolcomms.routers import admin_chat, messages, presence, publishing, staff_chat, student

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    ctx = get_context()
    Base.metadata.create_all(bind=ctx.engine)
    logging.getLogger(__name__).info('app_started env=%s', settings.app_env)
    yield


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logging.getLogger('schoolcomms.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response


app.include_router(admin_chat.router)
app.include_router(messages.router)
app.include_router(staff_chat.router)
app.include_router(student.router)
app.include_router(publishing.router)
app.include_router(presence.router)


@app.get('/')
def root():
    return {'app': settings.app_name, 'status': 'ok'}


@app.get('/health')
def healthcheck():
    return {'status': 'ok'}
