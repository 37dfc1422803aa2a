"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

from irl_maturity.config import get_settings

DEFAULT_DB_PATH = get_settings().db_path

SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    description TEXT,
    sort_order INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 1
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category_id INTEGER NOT NULL REFERENCES categories(id),
    text TEXT NOT NULL,
    description TEXT,
    assessment_type TEXT NOT NULL DEFAULT 'both'
        CHECK (assessment_type IN ('quick', 'deep', 'both')),
    module TEXT,
    irl_phase TEXT,
    question_family TEXT,
    criticality INTEGER NOT NULL DEFAULT 1 CHECK (criticality BETWEEN 1 AND 3),
    sort_order INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_questions_axis
    ON questions (module, irl_phase, question_family);

CREATE TABLE IF NOT EXISTS question_options (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    question_id INTEGER NOT NULL REFERENCES questions(id),
    value INTEGER NOT NULL CHECK (value BETWEEN 0 AND 3),
    text TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    owner TEXT NOT NULL,
    status TEXT DEFAULT 'Active',
    created_at TEXT,
    quick_completed INTEGER DEFAULT 0,
    quick_score REAL,
    quick_maturity TEXT,
    quick_completed_at TEXT,
    deep_completed INTEGER DEFAULT 0,
    deep_score REAL,
    deep_maturity TEXT,
    deep_completed_at TEXT
);

CREATE TABLE IF NOT EXISTS assessments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id),
    assessed_by TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('quick', 'deep')),
    status TEXT NOT NULL DEFAULT 'in-progress',
    started_at TEXT,
    completed_at TEXT,
    current_module TEXT,
    current_irl_phase TEXT,
    current_question_family TEXT,
    question_ids TEXT DEFAULT '[]',  -- JSON
    overall_score REAL,
    maturity_level TEXT,
    version INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assessment_id INTEGER NOT NULL REFERENCES assessments(id),
    question_id INTEGER NOT NULL REFERENCES questions(id),
    selected_value INTEGER NOT NULL,
    score INTEGER NOT NULL,
    criticality INTEGER NOT NULL DEFAULT 1,
    category_id INTEGER,
    module TEXT,
    irl_phase TEXT,
    question_family TEXT,
    time_spent INTEGER DEFAULT 0,
    answered_at TEXT,
    UNIQUE(assessment_id, question_id)
);

CREATE TABLE IF NOT EXISTS unlock_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assessment_id INTEGER NOT NULL REFERENCES assessments(id),
    module TEXT NOT NULL,
    irl_phase TEXT NOT NULL,
    unlocked_at TEXT,
    UNIQUE(assessment_id, module, irl_phase)
);

CREATE TABLE IF NOT EXISTS completed_modules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assessment_id INTEGER NOT NULL REFERENCES assessments(id),
    module TEXT NOT NULL,
    UNIQUE(assessment_id, module)
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
