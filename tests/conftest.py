import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('BCRYPT_ROUNDS', '4')

from portal.auth.passwords import hash_password  # noqa: E402
from portal.database import Base  # noqa: E402
from portal.models import classroom, coursework, senior_citizen, vark_module  # noqa: E402,F401
from portal.models.profile import Profile, compose_full_name, new_id  # noqa: E402

TEST_PASSWORD = 'secret123'


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_profile(db):
    def _make_profile(role: str = 'student', email: str | None = None, **fields) -> Profile:
        fields.setdefault('first_name', role.title())
        fields.setdefault('last_name', 'User')
        fields.setdefault('full_name', compose_full_name(fields['first_name'], None, fields['last_name']))
        profile = Profile(
            email=email or f'{role}-{new_id()[:8]}@example.com',
            hashed_password=hash_password(TEST_PASSWORD),
            role=role,
            **fields,
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile

    return _make_profile
