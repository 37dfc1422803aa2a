"""Seed the database with assessment categories and the question bank."""
import json
import logging
from pathlib import Path
from typing import Optional

from irl_maturity.db import get_connection
from irl_maturity.errors import ValidationError
from irl_maturity.models import AssessmentType, IrlPhase, MAX_OPTION_VALUE, Module, QuestionFamily

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds question categories."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]
    conn.close()
    return count > 0


def insert_category(db_path: str, code: str, name: str, description: str = "", sort_order: int = 0) -> int:
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO categories (code, name, description, sort_order) VALUES (?, ?, ?, ?)
        ON CONFLICT(code) DO UPDATE SET name=excluded.name, description=excluded.description,
        sort_order=excluded.sort_order""",
        (code, name, description, sort_order),
    )
    category_id = conn.execute("SELECT id FROM categories WHERE code = ?", (code,)).fetchone()["id"]
    conn.commit()
    conn.close()
    return category_id


def insert_question(
    db_path: str,
    category_id: int,
    text: str,
    options: list,
    assessment_type: str = "both",
    module: Optional[str] = None,
    irl_phase: Optional[str] = None,
    question_family: Optional[str] = None,
    criticality: int = 1,
    sort_order: int = 0,
    is_active: bool = True,
) -> int:
    """Insert one question and its ``(value, text)`` options; returns the question id.

    Deep questions must carry a full module/phase/family classification.
    """
    if assessment_type not in ("quick", "deep", "both"):
        raise ValidationError(f"Unknown assessment type: {assessment_type}")
    if assessment_type == AssessmentType.DEEP.value and None in (module, irl_phase, question_family):
        raise ValidationError(f"Deep question {text!r} needs a module, phase and family")
    # Normalise through the enums so bad vocabulary fails here, not at load time
    module = Module(module).value if module else None
    irl_phase = IrlPhase(irl_phase).value if irl_phase else None
    question_family = QuestionFamily(question_family).value if question_family else None
    if not 1 <= criticality <= 3:
        raise ValidationError(f"Criticality must be 1-3, got {criticality}")
    for value, _ in options:
        if not 0 <= value <= MAX_OPTION_VALUE:
            raise ValidationError(f"Option value must be 0-{MAX_OPTION_VALUE}, got {value}")

    conn = get_connection(db_path)
    cur = conn.execute(
        """INSERT INTO questions
        (category_id, text, assessment_type, module, irl_phase, question_family,
         criticality, sort_order, is_active)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (category_id, text, assessment_type, module, irl_phase, question_family,
         criticality, sort_order, int(is_active)),
    )
    question_id = cur.lastrowid
    conn.executemany(
        "INSERT INTO question_options (question_id, value, text) VALUES (?, ?, ?)",
        [(question_id, value, option_text) for value, option_text in options],
    )
    conn.commit()
    conn.close()
    return question_id


def seed_categories(db_path: str, data: dict) -> dict:
    """Insert categories; returns ``{code: id}``."""
    return {
        c["code"]: insert_category(db_path, c["code"], c["name"], c.get("description", ""), c.get("order", 0))
        for c in data["categories"]
    }


def seed_questions(db_path: str, data: dict, category_ids: dict) -> int:
    count = 0
    for q in data["quick_questions"]:
        insert_question(
            db_path, category_ids[q["category"]], q["text"], q["options"],
            assessment_type="quick", sort_order=q.get("order", 0),
        )
        count += 1
    for q in data["deep_questions"]:
        insert_question(
            db_path, category_ids[q["category"]], q["text"], q["options"],
            assessment_type="deep",
            module=q["module"], irl_phase=q["irl_phase"], question_family=q["family"],
            criticality=q.get("criticality", 1), sort_order=q.get("order", 0),
        )
        count += 1
    return count


def seed_all(db_path: str, bank_path: Optional[Path] = None) -> None:
    """Load the bundled question bank unless the database is already seeded."""
    if is_seeded(db_path):
        return
    data = json.loads((bank_path or CONTENT_DIR / "question_bank.json").read_text(encoding="utf-8"))
    category_ids = seed_categories(db_path, data)
    count = seed_questions(db_path, data, category_ids)
    logger.info("Seeded %d categories and %d questions", len(category_ids), count)
