"""Session persistence with optimistic versioning."""
import json
import logging
from typing import Optional

from irl_maturity.db import get_connection
from irl_maturity.errors import SessionNotFound, StaleSession
from irl_maturity.models import (
    Answer, AssessmentSession, AssessmentStatus, AssessmentType, IrlPhase, Module,
    ProgressionState, QuestionFamily, UnlockRecord,
)
from irl_maturity.scoring import compute_scores

logger = logging.getLogger(__name__)


def _enum_or_none(enum_cls, value):
    return enum_cls(value) if value else None


def _row_to_answer(row) -> Answer:
    return Answer(
        question_id=row["question_id"],
        selected_value=row["selected_value"],
        score=row["score"],
        category_id=row["category_id"],
        criticality=row["criticality"],
        module=_enum_or_none(Module, row["module"]),
        irl_phase=_enum_or_none(IrlPhase, row["irl_phase"]),
        question_family=_enum_or_none(QuestionFamily, row["question_family"]),
        time_spent_seconds=row["time_spent"],
        answered_at=row["answered_at"],
    )


def load_session(db_path: str, session_id: int) -> AssessmentSession:
    """Load a session with its answers and progression.

    A completed session's scores are recomputed from its answers rather than
    read back, so they cannot drift from the answer list.
    """
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM assessments WHERE id = ?", (session_id,)).fetchone()
    if row is None:
        conn.close()
        raise SessionNotFound(session_id)
    answers = [
        _row_to_answer(a)
        for a in conn.execute(
            "SELECT * FROM answers WHERE assessment_id = ? ORDER BY id", (session_id,)
        ).fetchall()
    ]
    progression = None
    if row["type"] == AssessmentType.DEEP.value:
        unlocks = conn.execute(
            "SELECT module, irl_phase, unlocked_at FROM unlock_records WHERE assessment_id = ? ORDER BY id",
            (session_id,),
        ).fetchall()
        completed = conn.execute(
            "SELECT module FROM completed_modules WHERE assessment_id = ? ORDER BY id", (session_id,)
        ).fetchall()
        progression = ProgressionState(
            current_module=Module(row["current_module"]),
            current_irl_phase=IrlPhase(row["current_irl_phase"]),
            current_question_family=QuestionFamily(row["current_question_family"]),
            unlocked_phases=[
                UnlockRecord(Module(u["module"]), IrlPhase(u["irl_phase"]), u["unlocked_at"])
                for u in unlocks
            ],
            completed_modules=[Module(c["module"]) for c in completed],
        )
    conn.close()

    session = AssessmentSession(
        id=row["id"],
        project_id=row["project_id"],
        assessed_by=row["assessed_by"],
        type=AssessmentType(row["type"]),
        status=AssessmentStatus(row["status"]),
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        answers=answers,
        progression=progression,
        question_ids=json.loads(row["question_ids"] or "[]"),
        version=row["version"],
    )
    if session.status == AssessmentStatus.COMPLETED:
        session.result = compute_scores(session.answers)
    return session


def save_session(db_path: str, session: AssessmentSession) -> AssessmentSession:
    """Insert or update ``session`` in one transaction.

    Updates only apply if the stored version still matches the one the session
    was loaded with; otherwise StaleSession is raised and nothing is written.
    """
    p = session.progression
    fields = (
        session.status.value,
        session.completed_at,
        p.current_module.value if p else None,
        p.current_irl_phase.value if p else None,
        p.current_question_family.value if p else None,
        json.dumps(session.question_ids),
        session.result.overall_score if session.result else None,
        session.result.maturity_level if session.result else None,
    )
    conn = get_connection(db_path)
    try:
        if session.id is None:
            cur = conn.execute(
                """INSERT INTO assessments
                (project_id, assessed_by, type, started_at, status, completed_at,
                 current_module, current_irl_phase, current_question_family,
                 question_ids, overall_score, maturity_level, version)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)""",
                (session.project_id, session.assessed_by, session.type.value, session.started_at) + fields,
            )
            session_id = cur.lastrowid
        else:
            cur = conn.execute(
                """UPDATE assessments SET status=?, completed_at=?,
                current_module=?, current_irl_phase=?, current_question_family=?,
                question_ids=?, overall_score=?, maturity_level=?, version = version + 1
                WHERE id=? AND version=?""",
                fields + (session.id, session.version),
            )
            if cur.rowcount == 0:
                exists = conn.execute("SELECT 1 FROM assessments WHERE id = ?", (session.id,)).fetchone()
                conn.rollback()
                if not exists:
                    raise SessionNotFound(session.id)
                logger.warning("Rejected stale write to assessment %s (version %s)", session.id, session.version)
                raise StaleSession(session.id, session.version)
            session_id = session.id

        for a in session.answers:
            conn.execute(
                """INSERT INTO answers
                (assessment_id, question_id, selected_value, score, criticality, category_id,
                 module, irl_phase, question_family, time_spent, answered_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(assessment_id, question_id) DO UPDATE SET
                selected_value=excluded.selected_value, score=excluded.score,
                criticality=excluded.criticality, time_spent=excluded.time_spent,
                answered_at=excluded.answered_at""",
                (
                    session_id, a.question_id, a.selected_value, a.score, a.criticality, a.category_id,
                    a.module.value if a.module else None,
                    a.irl_phase.value if a.irl_phase else None,
                    a.question_family.value if a.question_family else None,
                    a.time_spent_seconds, a.answered_at,
                ),
            )
        if p:
            for r in p.unlocked_phases:
                conn.execute(
                    "INSERT OR IGNORE INTO unlock_records (assessment_id, module, irl_phase, unlocked_at) VALUES (?, ?, ?, ?)",
                    (session_id, r.module.value, r.irl_phase.value, r.unlocked_at),
                )
            for m in p.completed_modules:
                conn.execute(
                    "INSERT OR IGNORE INTO completed_modules (assessment_id, module) VALUES (?, ?)",
                    (session_id, m.value),
                )
        conn.commit()
    finally:
        conn.close()

    session.id = session_id
    session.version += 1
    return session


def find_in_progress(db_path: str, project_id: int, assessed_by: str, assessment_type: AssessmentType) -> Optional[int]:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT id FROM assessments
        WHERE project_id = ? AND assessed_by = ? AND type = ? AND status = 'in-progress'
        ORDER BY id DESC LIMIT 1""",
        (project_id, assessed_by, assessment_type.value),
    ).fetchone()
    conn.close()
    return row["id"] if row else None


def list_sessions(db_path: str, project_id: Optional[int] = None) -> list[dict]:
    """Assessment history, newest first."""
    conn = get_connection(db_path)
    sql = """SELECT a.id, a.project_id, p.name AS project_name, a.assessed_by, a.type, a.status,
        a.started_at, a.completed_at, a.overall_score, a.maturity_level,
        (SELECT COUNT(*) FROM answers WHERE assessment_id = a.id) AS answered
        FROM assessments a JOIN projects p ON a.project_id = p.id"""
    params = ()
    if project_id is not None:
        sql += " WHERE a.project_id = ?"
        params = (project_id,)
    rows = conn.execute(sql + " ORDER BY a.id DESC", params).fetchall()
    conn.close()
    return [dict(r) for r in rows]
