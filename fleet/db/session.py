from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fleet.core.config import settings

connect_args = (
    {"check_same_thread": False} if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite") else {}
)

engine = create_engine(settings.SQLALCHEMY_DATABASE_URI, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
