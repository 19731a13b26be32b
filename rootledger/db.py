from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from rootledger.config import settings
from rootledger.models import Base

_engine = None
SessionLocal = None


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        eng = create_engine(url, connect_args={"check_same_thread": False})

        # SQLite ignores foreign keys unless asked, per connection
        @event.listens_for(eng, "connect")
        def _fk_on(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return eng
    return create_engine(url, pool_pre_ping=True, pool_size=10, max_overflow=30)


def make_session_factory(eng: Engine) -> sessionmaker:
    # rows returned by the sequencer outlive their session
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=eng)


def init_db():
    global _engine, SessionLocal
    if _engine is not None:
        return
    _engine = make_engine(settings.database_url)
    SessionLocal = make_session_factory(_engine)
    Base.metadata.create_all(bind=_engine)

    # Lightweight sanity query
    with _engine.connect() as c:
        c.execute(text("SELECT 1"))


def session_factory() -> sessionmaker:
    if SessionLocal is None:
        init_db()
    return SessionLocal


def get_db():
    db = session_factory()()
    try:
        yield db
    finally:
        db.close()
