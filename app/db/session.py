from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.core.config import settings

_ATOMIC_DEPTH_KEY = 'atomic_depth'


def build_engine(url: str, timeout: float = settings.DB_TIMEOUT_SECONDS) -> Engine:
    if url.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False, 'timeout': timeout}}
        if ':memory:' in url or url in ('sqlite://', 'sqlite:///'):
            kwargs['poolclass'] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True, pool_timeout=timeout)


engine = build_engine(settings.DATABASE_URL)


def get_session():
    with Session(engine) as session:
        yield session


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Run a block as one all-or-nothing unit of work.

    The outermost ``atomic`` commits on success and rolls back on any error.
    Nested blocks only flush, so their writes join the enclosing transaction
    and fail or succeed with it.
    """
    depth = session.info.get(_ATOMIC_DEPTH_KEY, 0)
    session.info[_ATOMIC_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
        else:
            session.flush()
    except BaseException:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_ATOMIC_DEPTH_KEY] = depth
