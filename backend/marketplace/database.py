import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from marketplace.config import settings
from marketplace.utils.geo import sql_distance_km


class Base(DeclarativeBase):
    pass


def _on_connect(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={settings.sqlite_busy_timeout_seconds * 1000}")
    cursor.close()
    dbapi_conn.create_function("distance_km", 4, sql_distance_km, deterministic=True)


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        },
    )
    event.listen(engine, "connect", _on_connect)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- JOBS
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id                       TEXT PRIMARY KEY,
    poster_id                TEXT NOT NULL,
    worker_id                TEXT,
    title                    TEXT NOT NULL,
    description              TEXT NOT NULL,
    category                 TEXT NOT NULL,
    location_address         TEXT NOT NULL,
    location_lat             REAL NOT NULL CHECK(location_lat BETWEEN -90 AND 90),
    location_lng             REAL NOT NULL CHECK(location_lng BETWEEN -180 AND 180),
    location_city            TEXT,
    location_state           TEXT,
    location_zip             TEXT,
    price                    NUMERIC NOT NULL CHECK(price >= 0),
    price_type               TEXT NOT NULL CHECK(price_type IN ('fixed','hourly')),
    urgency                  TEXT NOT NULL DEFAULT 'normal'
                             CHECK(urgency IN ('low','normal','high','urgent')),
    estimated_duration_hours INTEGER CHECK(estimated_duration_hours IS NULL OR estimated_duration_hours > 0),
    scheduled_start          TEXT,
    actual_start             TEXT,
    actual_end               TEXT,
    status                   TEXT NOT NULL DEFAULT 'open'
                             CHECK(status IN ('open','assigned','in_progress','completed',
                                              'cancelled','disputed')),
    completion_notes         TEXT,
    poster_rating            INTEGER CHECK(poster_rating IS NULL OR poster_rating BETWEEN 1 AND 5),
    worker_rating            INTEGER CHECK(worker_rating IS NULL OR worker_rating BETWEEN 1 AND 5),
    poster_review            TEXT,
    worker_review            TEXT,
    created_at               TEXT NOT NULL,
    updated_at               TEXT NOT NULL,
    -- a worker is attached exactly while the job is past assignment
    CHECK((worker_id IS NULL) = (status IN ('open','cancelled')))
);

CREATE INDEX IF NOT EXISTS idx_jobs_poster ON jobs(poster_id);
CREATE INDEX IF NOT EXISTS idx_jobs_worker ON jobs(worker_id);
CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_category ON jobs(category);
CREATE INDEX IF NOT EXISTS idx_jobs_created ON jobs(created_at);
CREATE INDEX IF NOT EXISTS idx_jobs_location ON jobs(location_lat, location_lng);

CREATE TABLE IF NOT EXISTS job_skills (
    job_id TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    skill  TEXT NOT NULL,
    PRIMARY KEY (job_id, skill)
);

CREATE INDEX IF NOT EXISTS idx_job_skills_skill ON job_skills(skill);

-- ============================================================
-- APPLICATIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS applications (
    id                        TEXT PRIMARY KEY,
    job_id                    TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    worker_id                 TEXT NOT NULL,
    message                   TEXT,
    proposed_price            NUMERIC CHECK(proposed_price IS NULL OR proposed_price >= 0),
    estimated_completion_time INTEGER CHECK(estimated_completion_time IS NULL OR estimated_completion_time > 0),
    status                    TEXT NOT NULL DEFAULT 'pending'
                              CHECK(status IN ('pending','accepted','rejected','withdrawn')),
    applied_at                TEXT NOT NULL,
    responded_at              TEXT,
    CHECK((responded_at IS NULL) = (status = 'pending'))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_applications_job_worker ON applications(job_id, worker_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_applications_one_accepted
    ON applications(job_id) WHERE status = 'accepted';
CREATE INDEX IF NOT EXISTS idx_applications_worker ON applications(worker_id);
CREATE INDEX IF NOT EXISTS idx_applications_status ON applications(status);

-- ============================================================
-- BULK JOB OPERATIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS bulk_job_operations (
    id              TEXT PRIMARY KEY,
    enterprise_id   TEXT NOT NULL,
    operation_type  TEXT NOT NULL CHECK(operation_type IN ('create','update','cancel')),
    total_jobs      INTEGER NOT NULL CHECK(total_jobs >= 0),
    successful_jobs INTEGER NOT NULL DEFAULT 0,
    failed_jobs     INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'pending'
                    CHECK(status IN ('pending','processing','completed','partial','failed')),
    error_details   TEXT NOT NULL DEFAULT '[]',
    created_by      TEXT NOT NULL,
    started_at      TEXT NOT NULL,
    completed_at    TEXT,
    CHECK(successful_jobs + failed_jobs <= total_jobs)
);

CREATE INDEX IF NOT EXISTS idx_bulk_ops_enterprise ON bulk_job_operations(enterprise_id, started_at);

-- ============================================================
-- SETTLEMENTS
-- ============================================================
CREATE TABLE IF NOT EXISTS settlements (
    id                 TEXT PRIMARY KEY,
    job_id             TEXT NOT NULL UNIQUE REFERENCES jobs(id) ON DELETE CASCADE,
    poster_id          TEXT NOT NULL,
    worker_id          TEXT NOT NULL,
    gross_amount       NUMERIC NOT NULL CHECK(gross_amount >= 0),
    platform_fee       NUMERIC NOT NULL,
    worker_amount      NUMERIC NOT NULL,
    fee_rate           NUMERIC NOT NULL,
    currency           TEXT NOT NULL,
    status             TEXT NOT NULL DEFAULT 'pending'
                       CHECK(status IN ('pending','authorized','captured','failed',
                                        'refunded','disputed')),
    external_reference TEXT,
    failure_reason     TEXT,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_settlements_status ON settlements(status);
"""


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    conn.close()
