from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic.core import config


def build_connect_args(database_url: str, timeout_seconds: int) -> dict:
    if database_url.startswith("sqlite"):
        return {"timeout": timeout_seconds, "check_same_thread": False}
    if database_url.startswith("postgresql"):
        return {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_seconds * 1000}",
        }
    return {}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    connect_args=build_connect_args(config.DATABASE_URL, config.STORE_TIMEOUT_SECONDS),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


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
            ('duration_minutes', 'ALTER TABLE appointments ADD COLUMN duration_minutes INTEGER DEFAULT 60'),
            ('status', "ALTER TABLE appointments ADD COLUMN status VARCHAR(16) DEFAULT 'scheduled'"),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appt_doctor_time ON appointments(doctor_id, start_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appt_patient_time ON appointments(patient_id, start_time)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appt_doctor_start_scheduled '
                    "ON appointments(doctor_id, start_time) WHERE status = 'scheduled'"
                )
            )

        _appointment_schema_checked = True
