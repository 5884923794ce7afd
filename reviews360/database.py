"""Database configuration and initialization."""
from contextlib import contextmanager

from sqlalchemy import BigInteger, Integer, create_engine, event
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer(), 'sqlite')

# Global engine; the session registry is bound in init_db()
engine = None
db_session = scoped_session(sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False))


def init_db(app):
    """Initialize database connection."""
    global engine

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine_options = {
        'echo': app.config.get('SQLALCHEMY_ECHO', False),
        'pool_pre_ping': True,  # Enable connection health checks
    }
    if database_uri.startswith('sqlite'):
        engine_options['connect_args'] = {'timeout': 15}
    else:
        engine_options.update(pool_size=10, max_overflow=20)

    engine = create_engine(database_uri, **engine_options)

    if database_uri.startswith('sqlite'):
        @event.listens_for(engine, 'connect')
        def _enable_foreign_keys(dbapi_connection, connection_record):
            # pysqlite's own BEGIN handling breaks SAVEPOINT; emit BEGIN ourselves
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

        @event.listens_for(engine, 'begin')
        def _begin(conn):
            conn.exec_driver_sql('BEGIN')

    db_session.remove()
    db_session.configure(bind=engine)
    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()

    return engine


def create_all():
    """Create every table known to the models package."""
    import reviews360.models  # noqa: F401  (registers mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table (tests only)."""
    import reviews360.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


@contextmanager
def transaction(session):
    """
    Commit the session when the block succeeds, roll it back otherwise.

    Storage failures other than constraint violations are re-raised as
    StorageError so callers can retry.
    """
    from reviews360.exceptions import StorageError

    try:
        yield session
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
    except DBAPIError as e:
        session.rollback()
        raise StorageError(f"Database error: {e.__class__.__name__}") from e
    except Exception:
        session.rollback()
        raise


# Alias for easier imports
db = db_session
