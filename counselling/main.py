from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from counselling.config import settings
from counselling.core.errors import install_error_handlers
from counselling.db import Base, engine
from counselling.request_context import EndpointNameRoute
from counselling.routers import analytics, appointments, auth, counsellors, journals, moods, sessions

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info('app_started env=%s database=%s', settings.app_env, engine.url.get_backend_name())
    yield


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)
install_error_handlers(app)


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.request_slow_ms:
        logging.getLogger('counselling.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response


app.include_router(auth.router)
app.include_router(counsellors.router)
app.include_router(appointments.router)
app.include_router(sessions.router)
app.include_router(journals.router)
app.include_router(moods.router)
app.include_router(analytics.router)


@app.get('/')
def root():
    return {'app': settings.app_name, 'status': 'ok'}


@app.get('/health')
def healthcheck():
    return {'success': True, 'data': {'status': 'ok'}}


def run() -> None:
    import uvicorn

    uvicorn.run('counselling.main:app', host=settings.host, port=settings.port)


if __name__ == '__main__':
    run()
