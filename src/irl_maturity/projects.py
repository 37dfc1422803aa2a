"""Projects being assessed and the results recorded against them."""
import logging
from datetime import datetime

from irl_maturity.db import get_connection
from irl_maturity.errors import ProjectNotFound
from irl_maturity.models import AssessmentType

logger = logging.getLogger(__name__)


def create_project(db_path: str, name: str, owner: str) -> int:
    conn = get_connection(db_path)
    cur = conn.execute(
        "INSERT INTO projects (name, owner, created_at) VALUES (?, ?, ?)",
        (name, owner, datetime.now().isoformat()),
    )
    conn.commit()
    project_id = cur.lastrowid
    conn.close()
    return project_id


def get_project(db_path: str, project_id: int) -> dict:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    conn.close()
    if row is None:
        raise ProjectNotFound(project_id)
    return dict(row)


def list_projects(db_path: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM projects ORDER BY id").fetchall()
    conn.close()
    return [dict(r) for r in rows]


def set_project_status(db_path: str, project_id: int, status: str) -> None:
    conn = get_connection(db_path)
    conn.execute("UPDATE projects SET status = ? WHERE id = ?", (status, project_id))
    conn.commit()
    conn.close()


def status_for(assessment_type: AssessmentType, completed: bool) -> str:
    kind = "Quick" if assessment_type == AssessmentType.QUICK else "Deep"
    return f"{kind} Assessment {'Completed' if completed else 'In Progress'}"


def notify_project_completion(
    db_path: str,
    project_id: int,
    assessment_type: AssessmentType,
    score: float,
    maturity_level: str,
    completed_at: str,
) -> None:
    """Record a finished assessment's result on its project."""
    prefix = "quick" if assessment_type == AssessmentType.QUICK else "deep"
    conn = get_connection(db_path)
    conn.execute(
        f"""UPDATE projects SET status = ?, {prefix}_completed = 1, {prefix}_score = ?,
        {prefix}_maturity = ?, {prefix}_completed_at = ? WHERE id = ?""",
        (status_for(assessment_type, True), score, maturity_level, completed_at, project_id),
    )
    conn.commit()
    conn.close()
    logger.info("Project %s recorded %s result %.2f (%s)", project_id, prefix, score, maturity_level)
