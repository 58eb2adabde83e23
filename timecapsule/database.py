from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from timecapsule.config import get_settings

settings = get_settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    from timecapsule import models  # noqa: F401  registers tables on Base

    Base.metadata.create_all(bind=engine)
