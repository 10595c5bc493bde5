import logging
from sqlalchemy import URL, create_engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def get_engine(db_settings, echo: bool = False, pool_pre_ping: bool = True):
    """
    Creates and returns a SQLAlchemy engine based on the loaded pydantic settings.
    """
    engine_args = {"echo": echo, "pool_pre_ping": pool_pre_ping}

    url_object = None

    match db_settings.type:
        case "postgresql":
            url_object = URL.create(
                drivername=f"postgresql+{db_settings.driver}",
                username=db_settings.username,
                password=db_settings.password,
                host=db_settings.host,
                port=db_settings.port,
                database=db_settings.db_name,
            )

        case "sqlite3":
            if db_settings.in_memory:
                url_object = "sqlite:///:memory:"
                # Every session must see the same in-memory database
                engine_args["poolclass"] = StaticPool
                engine_args["connect_args"] = {"check_same_thread": False}
            else:
                url_object = f"sqlite:///{db_settings.db_location}"

        case _:
            raise ValueError(
                f"Unsupported DB type: {db_settings.type}"
            )

    if url_object is None:
        raise ValueError("Database URL object was not created. Check configuration.")

    logger.debug(f"Creating engine for {db_settings.type} database")
    return create_engine(url_object, **engine_args)
