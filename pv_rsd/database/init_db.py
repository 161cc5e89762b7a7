"""Database initialization and seeding.

Provides:
- Database engine setup (PostgreSQL in production, SQLite for local runs)
- get_db() context manager for session handling
- init_database() for table creation
- seed_test_standards() / seed_demo_device() for first-run data
"""

import os
from contextlib import contextmanager
from typing import Generator, List, Dict, Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from config.config import DATABASE_URL
from config.test_standards import TEST_STANDARDS, DEMO_DEVICE
from .schema import Base, Device, TestStandard


def create_db_engine(url: str = DATABASE_URL, echo: bool = False) -> Engine:
    """Create an engine with connection pool settings suited to the backend."""
    if url.startswith('sqlite'):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=echo,
    )


engine = create_db_engine(DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """Provide a transactional scope around database operations.

    Usage:
        with get_db() as db:
            experiments = db.query(Experiment).all()
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_all_test_standards() -> List[Dict[str, Any]]:
    """Return a row dict for every registered experiment type."""
    rows = []
    for exp_type, standard in TEST_STANDARDS.items():
        rows.append({
            "standard_name": standard.name,
            "standard_code": standard.standard_code,
            "experiment_type": exp_type,
            "description": standard.description,
            "requirements": {
                p.key: {
                    "label": p.label,
                    "type": p.param_type.value,
                    "unit": p.unit,
                    "default": p.default,
                }
                for p in standard.parameters
            },
        })
    return rows


def seed_test_standards(db: Session) -> int:
    """Seed test standards that are not yet stored.

    Returns:
        Number of standards seeded
    """
    seeded_count = 0
    for standard_dict in get_all_test_standards():
        existing = db.query(TestStandard).filter(
            TestStandard.standard_code == standard_dict["standard_code"],
            TestStandard.experiment_type == standard_dict["experiment_type"],
        ).first()

        if existing:
            continue

        db.add(TestStandard(**standard_dict))
        seeded_count += 1
        print(f"  + Seeded: {standard_dict['standard_code']} - {standard_dict['standard_name']}")

    db.flush()
    return seeded_count


def seed_demo_device(db: Session) -> bool:
    """Create the demo rapid shutdown device if it is missing."""
    if db.get(Device, DEMO_DEVICE["id"]) is not None:
        return False

    db.add(Device(**DEMO_DEVICE))
    db.flush()
    print(f"  + Demo device created: {DEMO_DEVICE['id']}")
    return True


def init_database(db_engine: Optional[Engine] = None) -> None:
    """Initialize database: create tables and seed first-run data.

    Called on application startup so the schema exists and the test
    standards are populated.
    """
    db_engine = db_engine or engine
    factory = SessionLocal if db_engine is engine else sessionmaker(bind=db_engine)

    print("\n" + "=" * 60)
    print("DATABASE INITIALIZATION STARTED")
    print("=" * 60)

    Base.metadata.create_all(bind=db_engine)
    print("Tables created successfully")

    with get_db(factory) as db:
        standards = seed_test_standards(db)
        seed_demo_device(db)

    print(f"Test standards newly seeded: {standards}")
    print("=" * 60)
    print("DATABASE INITIALIZATION COMPLETE")
    print("=" * 60 + "\n")


# Auto-initialize when module is imported in production
if os.environ.get('AUTO_INIT_DB', 'false').lower() == 'true':
    init_database()
