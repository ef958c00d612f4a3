import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from portal.core import config
from portal.database import Base, check_database_connection, engine, ensure_profile_schema
from portal.models import classroom, coursework, profile, senior_citizen, vark_module  # noqa: F401
from portal.routes import (
    auth_routes,
    class_routes,
    onboarding_routes,
    profile_routes,
    senior_routes,
    student_dashboard_routes,
    teacher_dashboard_routes,
    vark_module_routes,
)
from portal.routes.common import database_unavailable

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Community Portal API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_profile_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Community Portal API Running'}


@app.get('/health/database')
def database_health():
    try:
        check_database_connection()
    except SQLAlchemyError as exc:
        logger.exception('Database health check failed')
        raise database_unavailable() from exc
    return {'success': True, 'message': 'Database connection successful'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(profile_routes.router, prefix='/profiles')
app.include_router(onboarding_routes.router, prefix='/onboarding')
app.include_router(senior_routes.router, prefix='/seniors')
app.include_router(vark_module_routes.router, prefix='/vark-modules')
app.include_router(class_routes.router, prefix='/classes')
app.include_router(student_dashboard_routes.router, prefix='/student/dashboard')
app.include_router(teacher_dashboard_routes.router, prefix='/teacher/dashboard')
