from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

# A factory for creating new Session objects.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def make_table_args(*constraints):
    """
    Helper to build __table_args__ from indexes and constraints.

    Usage:
        __table_args__ = make_table_args(Index(...), UniqueConstraint(...))
    Or:
        __table_args__ = make_table_args()  # No constraints
    """
    if constraints:
        return constraints
    return {}
