import os
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from app.utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lostfound.db")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)


def init_db(bind=None):
    # register tables on the metadata before create_all
    from app.models import claim, item, notification, payment, user  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


def commit(session: Session, action: str):
    """Commit, turning store failures into ExternalServiceError."""
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Store commit failed while trying to %s: %s", action, e)
        raise ExternalServiceError(f"Could not {action}, try again") from e
