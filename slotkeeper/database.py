import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from slotkeeper.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./slotkeeper.db")

OVERLAP_CONSTRAINT_NAME = 'appointments_no_overlap_per_professional'


def build_engine(url: str):
    connect_args = {'check_same_thread': False} if url.startswith('sqlite') else {}
    return create_engine(url, echo=config.SQL_ECHO, pool_pre_ping=True, connect_args=connect_args)


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)
        table_names = inspector.get_table_names()

        with engine.begin() as connection:
            if 'availability_windows' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_availability_windows_professional_weekday '
                        'ON availability_windows(professional_id, weekday, start_time)'
                    )
                )
            if 'time_off' in table_names:
                existing_columns = {column['name'] for column in inspector.get_columns('time_off')}
                if 'description' not in existing_columns:
                    connection.execute(text('ALTER TABLE time_off ADD COLUMN description VARCHAR'))
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_time_off_professional_range '
                        'ON time_off(professional_id, start_date, end_date)'
                    )
                )

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('client_phone', 'ALTER TABLE appointments ADD COLUMN client_phone VARCHAR'),
            ('client_notes', 'ALTER TABLE appointments ADD COLUMN client_notes VARCHAR'),
            ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_professional_range '
                    'ON appointments(professional_id, scheduled_at, ends_at)'
                )
            )
            if connection.dialect.name == 'postgresql':
                install_overlap_constraint(connection)

        _appointment_schema_checked = True


def install_overlap_constraint(connection) -> None:
    """Reject overlapping time-consuming appointments for one professional at the storage level."""
    existing = connection.execute(
        text('SELECT 1 FROM pg_constraint WHERE conname = :name'),
        {'name': OVERLAP_CONSTRAINT_NAME},
    ).first()
    if existing:
        return

    connection.execute(text('CREATE EXTENSION IF NOT EXISTS btree_gist'))
    connection.execute(
        text(
            f'ALTER TABLE appointments ADD CONSTRAINT {OVERLAP_CONSTRAINT_NAME} '
            "EXCLUDE USING gist (professional_id WITH =, tstzrange(scheduled_at, ends_at, '[)') WITH &&) "
            "WHERE (status IN ('scheduled', 'confirmed', 'in_progress'))"
        )
    )
