"""Question catalog: read-only lookups over the active question bank."""
import sqlite3
from typing import Optional

from irl_maturity.db import get_connection
from irl_maturity.errors import CatalogError
from irl_maturity.models import (
    AssessmentType, Axis, IrlPhase, Module, Option, Question, QuestionFamily,
)

ORDER_BY = "ORDER BY q.question_family, q.criticality DESC, q.sort_order, q.id"


def _row_to_question(row, options: list) -> Question:
    return Question(
        id=row["id"],
        text=row["text"],
        description=row["description"] or "",
        category_id=row["category_id"],
        options=tuple(options),
        assessment_type=row["assessment_type"],
        module=Module(row["module"]) if row["module"] else None,
        irl_phase=IrlPhase(row["irl_phase"]) if row["irl_phase"] else None,
        question_family=QuestionFamily(row["question_family"]) if row["question_family"] else None,
        criticality=row["criticality"],
        sort_order=row["sort_order"],
        is_active=bool(row["is_active"]),
    )


class QuestionCatalog:
    """Lookups the engine needs from the question bank.

    Every query only sees active questions. ``sqlite3.Error`` is re-raised as
    :class:`CatalogError` so callers can decide whether a failed lookup is fatal.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _query(self, sql: str, params: tuple = ()) -> list:
        try:
            conn = get_connection(self.db_path)
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise CatalogError(f"Question catalog unavailable: {e}") from e

    def _load(self, rows: list) -> list[Question]:
        if not rows:
            return []
        ids = [r["id"] for r in rows]
        placeholders = ",".join("?" * len(ids))
        option_rows = self._query(
            f"SELECT question_id, value, text FROM question_options "
            f"WHERE question_id IN ({placeholders}) ORDER BY question_id, value, id",
            tuple(ids),
        )
        options = {}
        for o in option_rows:
            options.setdefault(o["question_id"], []).append(Option(value=o["value"], text=o["text"]))
        return [_row_to_question(r, options.get(r["id"], [])) for r in rows]

    @staticmethod
    def _filter(
        module: Optional[Module],
        irl_phase: Optional[IrlPhase],
        question_family: Optional[QuestionFamily],
        assessment_type: AssessmentType,
    ) -> tuple[str, tuple]:
        clauses = ["q.is_active = 1", "q.assessment_type IN (?, 'both')"]
        params = [assessment_type.value]
        for column, value in (("module", module), ("irl_phase", irl_phase),
                              ("question_family", question_family)):
            if value is not None:
                clauses.append(f"q.{column} = ?")
                params.append(value.value)
        return " AND ".join(clauses), tuple(params)

    def find_questions(
        self,
        module: Optional[Module] = None,
        irl_phase: Optional[IrlPhase] = None,
        question_family: Optional[QuestionFamily] = None,
        assessment_type: AssessmentType = AssessmentType.DEEP,
    ) -> list[Question]:
        where, params = self._filter(module, irl_phase, question_family, assessment_type)
        rows = self._query(f"SELECT q.* FROM questions q WHERE {where} {ORDER_BY}", params)
        return self._load(rows)

    def count_questions(
        self,
        module: Optional[Module] = None,
        irl_phase: Optional[IrlPhase] = None,
        question_family: Optional[QuestionFamily] = None,
        assessment_type: AssessmentType = AssessmentType.DEEP,
    ) -> int:
        where, params = self._filter(module, irl_phase, question_family, assessment_type)
        return self._query(f"SELECT COUNT(*) FROM questions q WHERE {where}", params)[0][0]

    def modules_with_questions(self, irl_phase: IrlPhase) -> list[Module]:
        where, params = self._filter(None, irl_phase, None, AssessmentType.DEEP)
        rows = self._query(f"SELECT DISTINCT q.module FROM questions q WHERE {where}", params)
        present = {r["module"] for r in rows}
        return [m for m in Module if m.value in present]

    def populated_axes(self) -> list[Axis]:
        """Every axis holding at least one active deep question, in vocabulary order."""
        where, params = self._filter(None, None, None, AssessmentType.DEEP)
        rows = self._query(
            f"SELECT DISTINCT q.module, q.irl_phase, q.question_family FROM questions q "
            f"WHERE {where} AND q.module IS NOT NULL",
            params,
        )
        present = {(r["module"], r["irl_phase"], r["question_family"]) for r in rows}
        return [
            Axis(m, p, f)
            for m in Module for p in IrlPhase for f in QuestionFamily
            if (m.value, p.value, f.value) in present
        ]

    def get_question(self, question_id: int) -> Optional[Question]:
        rows = self._query("SELECT q.* FROM questions q WHERE q.id = ? AND q.is_active = 1", (question_id,))
        loaded = self._load(rows)
        return loaded[0] if loaded else None

    def get_questions(self, question_ids: list) -> list[Question]:
        """Active questions among ``question_ids``, in the order given."""
        if not question_ids:
            return []
        placeholders = ",".join("?" * len(question_ids))
        rows = self._query(
            f"SELECT q.* FROM questions q WHERE q.id IN ({placeholders}) AND q.is_active = 1",
            tuple(question_ids),
        )
        by_id = {q.id: q for q in self._load(rows)}
        return [by_id[i] for i in question_ids if i in by_id]

    def quick_questions(self, per_category: int = 3) -> list[Question]:
        """Flat quick-assessment list: the first ``per_category`` questions of each active category."""
        categories = self._query("SELECT id FROM categories WHERE is_active = 1 ORDER BY sort_order, id")
        questions = []
        for c in categories:
            rows = self._query(
                """SELECT q.* FROM questions q
                WHERE q.category_id = ? AND q.is_active = 1 AND q.assessment_type IN ('quick', 'both')
                ORDER BY q.sort_order, q.id LIMIT ?""",
                (c["id"], per_category),
            )
            questions.extend(self._load(rows))
        return questions

    def category_names(self) -> dict:
        return {r["id"]: r["name"] for r in self._query("SELECT id, name FROM categories")}

    def structure(self) -> dict:
        """Nested ``{module: {phase: {family: total}}}`` of populated axes."""
        where, params = self._filter(None, None, None, AssessmentType.DEEP)
        rows = self._query(
            f"""SELECT q.module, q.irl_phase, q.question_family, COUNT(*) AS total
            FROM questions q WHERE {where} AND q.module IS NOT NULL
            GROUP BY q.module, q.irl_phase, q.question_family""",
            params,
        )
        counts = {(r["module"], r["irl_phase"], r["question_family"]): r["total"] for r in rows}
        structure = {}
        for m in Module:
            for p in IrlPhase:
                for f in QuestionFamily:
                    total = counts.get((m.value, p.value, f.value))
                    if total:
                        structure.setdefault(m, {}).setdefault(p, {})[f] = total
        return structure
