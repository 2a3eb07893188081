"""Database configuration and initialization."""
import atexit
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

logger = logging.getLogger(__name__)

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = scoped_session(sessionmaker(autocommit=False, autoflush=False))


def _engine_options(app):
    """Pool and driver options for the configured backend."""
    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    options = {
        'echo': app.config.get('SQLALCHEMY_ECHO', False),
        'pool_pre_ping': True,  # Enable connection health checks
    }
    if database_uri.startswith('sqlite'):
        return options

    options['pool_size'] = app.config.get('DB_POOL_SIZE', 20)
    options['max_overflow'] = app.config.get('DB_MAX_OVERFLOW', 10)
    if database_uri.startswith('postgresql'):
        timeout_ms = app.config.get('DB_STATEMENT_TIMEOUT_MS', 30000)
        options['connect_args'] = {
            'options': f'-c statement_timeout={timeout_ms} -c idle_in_transaction_session_timeout=10000'
        }
    return options


def _enable_sqlite_transactions(sqlite_engine):
    """
    Let SQLAlchemy drive BEGIN/SAVEPOINT on pysqlite.

    The stdlib driver otherwise defers BEGIN until the first write, which
    makes a SAVEPOINT issued after plain SELECTs commit on release.
    """
    @event.listens_for(sqlite_engine, 'connect')
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, 'begin')
    def _emit_begin(conn):
        conn.exec_driver_sql('BEGIN')


def init_db(app):
    """Initialize database connection."""
    global engine

    if engine is not None:
        db_session.remove()
        engine.dispose()

    engine = create_engine(app.config['SQLALCHEMY_DATABASE_URI'], **_engine_options(app))
    if engine.dialect.name == 'sqlite':
        _enable_sqlite_transactions(engine)

    db_session.configure(bind=engine)
    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()

    app.logger.info(f"Database engine ready: {engine.url.render_as_string(hide_password=True)}")


def shutdown_db():
    """Release every pooled connection."""
    global engine
    if engine is None:
        return
    db_session.remove()
    engine.dispose()
    engine = None
    logger.info("Database pool disposed")


atexit.register(shutdown_db)


def get_engine():
    """Get database engine."""
    return engine


def get_session():
    """Get database session."""
    return db_session


# Alias for easier imports
db = db_session
