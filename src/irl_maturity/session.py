"""Assessment sessions: start, answer, navigate and complete.

These are the operations a host (CLI, web handler) calls. Each one loads the
session, applies one change, saves it back with a version check and returns
what the caller needs next.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from irl_maturity import progression
from irl_maturity.catalog import QuestionCatalog
from irl_maturity.config import Settings, get_settings
from irl_maturity.errors import (
    CatalogError, NotAuthorized, NotInProgress, NotUnlockedError, QuestionNotFound,
    QuickAssessmentRequired, ValidationError, WrongAssessmentType,
)
from irl_maturity.feedback import Feedback, generate_feedback
from irl_maturity.models import (
    Answer, AssessmentSession, AssessmentStatus, AssessmentType, Axis, IrlPhase, Module,
    QuestionFamily,
)
from irl_maturity.projects import get_project, notify_project_completion, set_project_status, status_for
from irl_maturity.scoring import compute_scores
from irl_maturity.store import find_in_progress, load_session, save_session

logger = logging.getLogger(__name__)


@dataclass
class QuestionBatch:
    """Unanswered questions at the session's current position."""
    session: AssessmentSession
    questions: list
    total: int = 0
    axis: Optional[Axis] = None
    unlocked: list = field(default_factory=list)  # UnlockRecords created by this call
    resumed: bool = False

    @property
    def remaining(self) -> int:
        return len(self.questions)


def _check_actor(session: AssessmentSession, actor: Optional[str], elevated: bool = False) -> None:
    if actor is not None and actor != session.assessed_by and not elevated:
        raise NotAuthorized(f"{actor} is not the assessor of assessment {session.id}")


def _require_deep(session: AssessmentSession) -> None:
    if not session.is_deep:
        raise WrongAssessmentType("Navigation is only available for deep assessments")


def _batch(session: AssessmentSession, catalog: QuestionCatalog, unlocked=(), resumed=False) -> QuestionBatch:
    answered = session.answered_ids
    if session.is_deep:
        axis = session.progression.current_axis
        questions = catalog.find_questions(axis.module, axis.irl_phase, axis.question_family)
    else:
        axis = None
        questions = catalog.get_questions(session.question_ids)
    return QuestionBatch(
        session=session,
        questions=[q for q in questions if q.id not in answered],
        total=len(questions),
        axis=axis,
        unlocked=list(unlocked),
        resumed=resumed,
    )


def _resolve_start_axis(catalog: QuestionCatalog, requested: Axis) -> Axis:
    populated = catalog.populated_axes()
    if requested in populated:
        return requested
    family = progression.first_populated_family(requested.module, requested.irl_phase, populated)
    if family is not None:
        return Axis(requested.module, requested.irl_phase, family)
    for axis in populated:
        if axis.irl_phase == IrlPhase.IRL1:
            return axis
    return requested


def start_assessment(
    db_path: str,
    project_id: int,
    assessed_by: str,
    assessment_type: AssessmentType,
    module: Module = Module.PM,
    irl_phase: IrlPhase = IrlPhase.IRL1,
    question_family: QuestionFamily = QuestionFamily.GOUVERNANCE_PILOTAGE,
    settings: Optional[Settings] = None,
) -> QuestionBatch:
    """Start a session, or resume the assessor's in-progress one of the same type."""
    settings = settings or get_settings()
    assessment_type = AssessmentType(assessment_type)
    project = get_project(db_path, project_id)
    if (assessment_type == AssessmentType.DEEP and settings.require_quick_before_deep
            and not project["quick_completed"]):
        raise QuickAssessmentRequired(project_id)

    catalog = QuestionCatalog(db_path)
    existing = find_in_progress(db_path, project_id, assessed_by, assessment_type)
    if existing is not None:
        logger.info("Resuming %s assessment %s for project %s", assessment_type.value, existing, project_id)
        return _batch(load_session(db_path, existing), catalog, resumed=True)

    session = AssessmentSession(id=None, project_id=project_id, assessed_by=assessed_by, type=assessment_type)
    if assessment_type == AssessmentType.QUICK:
        questions = catalog.quick_questions(settings.quick_questions_per_category)
        session.question_ids = [q.id for q in questions]
    else:
        if irl_phase != IrlPhase.IRL1:
            raise NotUnlockedError(module, irl_phase)
        axis = _resolve_start_axis(catalog, Axis(module, irl_phase, question_family))
        session.progression = progression.initial_progression(axis, now=session.started_at)

    save_session(db_path, session)
    set_project_status(db_path, project_id, status_for(assessment_type, completed=False))
    logger.info("Started %s assessment %s for project %s", assessment_type.value, session.id, project_id)
    return _batch(session, catalog)


def next_questions(db_path: str, session_id: int, actor: Optional[str] = None) -> QuestionBatch:
    session = load_session(db_path, session_id)
    _check_actor(session, actor)
    return _batch(session, QuestionCatalog(db_path))


def submit_answer(
    db_path: str,
    session_id: int,
    question_id: int,
    selected_value: int,
    time_spent: int = 0,
    actor: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> QuestionBatch:
    """Record (or overwrite) the answer to one question and return the next batch.

    For deep sessions the phase unlock rule, the completed-module refresh and
    auto-advance run after the answer is merged. A catalog failure in any of
    them is logged and leaves the progression as it was; the answer itself is
    still saved before the next batch is looked up.
    """
    settings = settings or get_settings()
    session = load_session(db_path, session_id)
    _check_actor(session, actor)
    if session.status != AssessmentStatus.IN_PROGRESS:
        raise NotInProgress(session_id)
    if time_spent is None or time_spent < 0:
        raise ValidationError("time_spent must be a non-negative number of seconds")

    catalog = QuestionCatalog(db_path)
    question = catalog.get_question(question_id)
    if question is None:
        raise QuestionNotFound(question_id)
    if not question.is_available_for(session.type):
        raise ValidationError(f"Question {question_id} is not part of a {session.type.value} assessment")
    if session.is_deep and question.axis is None:
        raise ValidationError(f"Question {question_id} has no module/phase/family")
    if not session.is_deep and question_id not in session.question_ids:
        raise ValidationError(f"Question {question_id} is not part of assessment {session_id}")
    option = question.option_for(selected_value)
    if option is None:
        raise ValidationError(f"{selected_value!r} is not an option of question {question_id}")

    answer = Answer(
        question_id=question.id,
        selected_value=option.value,
        score=option.value,
        category_id=question.category_id,
        criticality=question.criticality if session.is_deep else 1,
        module=question.module if session.is_deep else None,
        irl_phase=question.irl_phase if session.is_deep else None,
        question_family=question.question_family if session.is_deep else None,
        time_spent_seconds=time_spent,
        answered_at=datetime.now().isoformat(),
    )
    is_new = session.merge_answer(answer)
    logger.debug("Assessment %s: %s answer to question %s = %s",
                 session_id, "new" if is_new else "replaced", question_id, option.value)

    unlocked = []
    if session.is_deep:
        state = session.progression
        try:
            unlocked = progression.record_answer(
                state, session.answers, answer, catalog, strategy=settings.unlock_strategy,
            )
            answered = session.answered_ids
            progression.refresh_completed_modules(state, answered, catalog)
            if settings.auto_advance:
                progression.advance(state, answered, catalog)
        except CatalogError:
            logger.warning("Unlock check after question %s skipped", question_id, exc_info=True)

    save_session(db_path, session)
    return _batch(session, catalog, unlocked)


def navigate(
    db_path: str,
    session_id: int,
    module: Module,
    irl_phase: IrlPhase,
    question_family: Optional[QuestionFamily] = None,
    elevated: bool = False,
    actor: Optional[str] = None,
) -> QuestionBatch:
    """Jump to another axis of a deep session; locked phases are rejected."""
    session = load_session(db_path, session_id)
    _check_actor(session, actor, elevated)
    _require_deep(session)
    if session.status != AssessmentStatus.IN_PROGRESS:
        raise NotInProgress(session_id)
    catalog = QuestionCatalog(db_path)
    progression.navigate(
        session.progression, catalog, Module(module), IrlPhase(irl_phase),
        QuestionFamily(question_family) if question_family else None,
        elevated=elevated,
    )
    save_session(db_path, session)
    return _batch(session, catalog)


def get_progress(
    db_path: str,
    session_id: int,
    actor: Optional[str] = None,
    elevated: bool = False,
    settings: Optional[Settings] = None,
) -> progression.ProgressReport:
    settings = settings or get_settings()
    session = load_session(db_path, session_id)
    _check_actor(session, actor, elevated)
    if not session.is_deep:
        raise WrongAssessmentType("Progress by module and phase is only available for deep assessments")
    return progression.build_progress_report(
        session.progression, session.answers, QuestionCatalog(db_path),
        threshold=settings.progression_threshold,
    )


def progress_percentage(db_path: str, session_id: int) -> int:
    """Share of the session done: questions for quick, populated phases for deep."""
    session = load_session(db_path, session_id)
    if session.is_deep:
        return get_progress(db_path, session_id).percentage
    if not session.question_ids:
        return 0
    answered = len(session.answered_ids & set(session.question_ids))
    return round(answered / len(session.question_ids) * 100)


def complete_assessment(db_path: str, session_id: int, actor: Optional[str] = None) -> AssessmentSession:
    """Finalize scores. Completing an already completed session returns it unchanged."""
    session = load_session(db_path, session_id)
    _check_actor(session, actor)
    if session.status == AssessmentStatus.COMPLETED:
        logger.info("Assessment %s already completed", session_id)
        return session

    session.result = compute_scores(session.answers)
    session.status = AssessmentStatus.COMPLETED
    session.completed_at = datetime.now().isoformat()
    save_session(db_path, session)
    notify_project_completion(
        db_path, session.project_id, session.type,
        session.result.overall_score, session.result.maturity_level, session.completed_at,
    )
    logger.info("Completed assessment %s: %.2f (%s)", session_id,
                session.result.overall_score, session.result.maturity_level)
    return session


def get_feedback(db_path: str, session_id: int) -> Feedback:
    session = load_session(db_path, session_id)
    result = session.result or compute_scores(session.answers)
    return generate_feedback(result, session.type, QuestionCatalog(db_path).category_names())
