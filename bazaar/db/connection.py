from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine,async_sessionmaker,AsyncSession
from sqlalchemy.pool import StaticPool
from bazaar.config.settings import config_settings
from bazaar.db.utils import _normalize_db_url

DATABASE_URL=_normalize_db_url(config_settings.DATABASE_URL)


def _build_engine(url: str):
    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=False, pool_pre_ping=True)

    # local runs and tests; a single shared connection keeps ":memory:" databases alive
    engine = create_async_engine(
        url,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # let SQLAlchemy own BEGIN so SAVEPOINTs (session.begin_nested) behave on pysqlite
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


async_engine=_build_engine(DATABASE_URL)

async_session=async_sessionmaker(bind=async_engine,class_=AsyncSession,expire_on_commit=False)
