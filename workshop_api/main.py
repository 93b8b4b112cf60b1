import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from workshop_api.core import config
from workshop_api.core.errors import register_exception_handlers
from workshop_api.core.logging_config import setup_logging
from workshop_api.database import init_schema
from workshop_api.routes import (
    activity_routes,
    auth_routes,
    calendar_routes,
    enrollment_routes,
    user_routes,
    workshop_routes,
)

setup_logging(config.LOG_LEVEL)
config.validate_runtime_config()

app = FastAPI(
    title=config.APP_TITLE,
    version=config.APP_VERSION,
    description='API for managing workshops, activities, and enrollments',
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

register_exception_handlers(app)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        init_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Workshop Management API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(calendar_routes.router)
app.include_router(user_routes.router, prefix='/users')
app.include_router(workshop_routes.router, prefix='/workshops')
app.include_router(activity_routes.router, prefix='/activities')
app.include_router(enrollment_routes.router, prefix='/enrollments')
