from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from fieldflow.config import settings


class Base(DeclarativeBase):
    pass


def get_engine(database_url: str):
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


# One session factory per service store. Services never open a session on
# another service's store; they go through its HTTP API instead.
InventorySessionLocal = sessionmaker(
    bind=get_engine(settings.inventory_database_url), autoflush=False, autocommit=False
)
CustomerSessionLocal = sessionmaker(
    bind=get_engine(settings.customer_database_url), autoflush=False, autocommit=False
)
DeploymentSessionLocal = sessionmaker(
    bind=get_engine(settings.deployment_database_url), autoflush=False, autocommit=False
)


def _session_dependency(factory):
    def _get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


get_inventory_db = _session_dependency(InventorySessionLocal)
get_customer_db = _session_dependency(CustomerSessionLocal)
get_deployment_db = _session_dependency(DeploymentSessionLocal)
