from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context
from fieldflow.config import settings
from fieldflow.db import Base
from fieldflow.models import customer, deployment, inventory  # noqa: F401

config = context.config

# Each store is migrated separately: alembic -x store=inventory upgrade inventory@head
STORE_MODULES = {
    "inventory": inventory.__name__,
    "customers": customer.__name__,
    "deployment": deployment.__name__,
}
STORE_URLS = {
    "inventory": settings.inventory_database_url,
    "customers": settings.customer_database_url,
    "deployment": settings.deployment_database_url,
}

store = context.get_x_argument(as_dictionary=True).get("store", "inventory")
if store not in STORE_MODULES:
    raise ValueError(f"Unknown store {store!r}; expected one of {sorted(STORE_MODULES)}")

config.set_main_option("sqlalchemy.url", STORE_URLS[store])

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_STORE_TABLES = {
    mapper.local_table.name
    for mapper in Base.registry.mappers
    if mapper.class_.__module__ == STORE_MODULES[store]
}


def include_object(object, name, type_, reflected, compare_to):
    """Limit autogenerate to the tables owned by the selected store."""
    if type_ == "table":
        return name in _STORE_TABLES
    return True


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            transaction_per_migration=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
