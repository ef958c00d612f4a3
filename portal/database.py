from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from portal.core import config


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_profile_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_profile_schema() -> None:
    """Add the learning-system columns to a profiles table created before them."""
    global _profile_schema_checked

    if _profile_schema_checked:
        return

    with _schema_lock:
        if _profile_schema_checked:
            return

        inspector = inspect(engine)

        if 'profiles' not in inspector.get_table_names():
            _profile_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('profiles')}
        migration_steps = [
            ('middle_name', 'ALTER TABLE profiles ADD COLUMN middle_name VARCHAR'),
            ('full_name', 'ALTER TABLE profiles ADD COLUMN full_name VARCHAR'),
            ('grade_level', 'ALTER TABLE profiles ADD COLUMN grade_level VARCHAR'),
            ('profile_photo', 'ALTER TABLE profiles ADD COLUMN profile_photo VARCHAR'),
            ('learning_style', 'ALTER TABLE profiles ADD COLUMN learning_style VARCHAR'),
            ('onboarding_completed', 'ALTER TABLE profiles ADD COLUMN onboarding_completed BOOLEAN DEFAULT FALSE'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_profiles_role ON profiles(role)')
            )

        _profile_schema_checked = True


def check_database_connection() -> None:
    with engine.connect() as connection:
        connection.execute(text('SELECT 1'))
