from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# table models must be imported before create_all
from findr.models.report import Report  # noqa: F401
from findr.models.user import User  # noqa: F401


def create_db_engine(database_url: str, echo: bool = False):
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

        # in-memory databases vanish per connection unless one is shared
        if ":memory:" in database_url or database_url == "sqlite://":
            return create_engine(database_url, echo=echo, connect_args=connect_args, poolclass=StaticPool)

        return create_engine(database_url, echo=echo, connect_args=connect_args)

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_db(engine):
    SQLModel.metadata.create_all(engine)
