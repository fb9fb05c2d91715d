import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from salon_backend.core import config
from salon_backend.core.engine_factory import get_notification_dispatcher
from salon_backend.database import Base, engine, ensure_database_schema
from salon_backend.models import appointment, service, user  # noqa: F401
from salon_backend.routes import (
    appointment_routes,
    auth_routes,
    availability_routes,
    client_routes,
    service_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

config.validate_runtime_config()

app = FastAPI(title='Salon Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_database_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.on_event('shutdown')
def stop_notifications() -> None:
    get_notification_dispatcher().shutdown(wait=True)


@app.get('/')
def root():
    return {'status': 'Salon Booking API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(service_routes.router, prefix='/services')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(client_routes.router, prefix='/clients')
