from contextlib import contextmanager
from sqlmodel import Session, SQLModel, create_engine

from lostlink import config

connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args)


def init_db(bind=None):
    # register tables on the metadata
    from lostlink.models import chat_message, item, match, notification  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope(bind=None):
    """Standalone session for work running outside a request."""
    with Session(bind or engine) as session:
        yield session
