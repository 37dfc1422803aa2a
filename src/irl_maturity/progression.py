"""Deep assessment progression: phase unlocking, navigation and completion tracking.

Each populated axis ``(module, phase, family)`` is either locked, unlocked and
incomplete, or completed. IRL1 is always reachable; any later phase becomes
reachable for a module once an :class:`UnlockRecord` exists for it. Records are
only ever appended, and only when absent, so evaluating the unlock rule twice
for the same answer is harmless.

Unlocking fires on answer count alone. The phase score is reported alongside
(``can_progress``) but never blocks an unlock.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from irl_maturity.catalog import QuestionCatalog
from irl_maturity.errors import NotUnlockedError, ValidationError
from irl_maturity.models import (
    Answer, Axis, IrlPhase, Module, ProgressionState, QuestionFamily, UnlockRecord,
)
from irl_maturity.scoring import PROGRESSION_THRESHOLD, score_answers

logger = logging.getLogger(__name__)

CROSS_MODULE = "cross_module"
PER_MODULE = "per_module"

ALL_AXES = [Axis(m, p, f) for m in Module for p in IrlPhase for f in QuestionFamily]


def _now() -> str:
    return datetime.now().isoformat()


def initial_progression(axis: Axis, now: Optional[str] = None) -> ProgressionState:
    """Fresh state positioned at ``axis`` with IRL1 unlocked for every module."""
    now = now or _now()
    return ProgressionState(
        current_module=axis.module,
        current_irl_phase=axis.irl_phase,
        current_question_family=axis.question_family,
        unlocked_phases=[UnlockRecord(m, IrlPhase.IRL1, now) for m in Module],
    )


def has_unlock_record(state: ProgressionState, module: Module, irl_phase: IrlPhase) -> bool:
    return any(r.module == module and r.irl_phase == irl_phase for r in state.unlocked_phases)


def is_reachable(state: ProgressionState, module: Module, irl_phase: IrlPhase) -> bool:
    return irl_phase == IrlPhase.IRL1 or has_unlock_record(state, module, irl_phase)


def questions_by_axis(catalog: QuestionCatalog) -> dict:
    """Map each populated axis to the ids of its active deep questions."""
    grouped = {}
    for q in catalog.find_questions():
        if q.axis is not None:
            grouped.setdefault(q.axis, set()).add(q.id)
    return grouped


def phase_counts(
    answers: list, catalog: QuestionCatalog, irl_phase: IrlPhase, module: Optional[Module] = None
) -> tuple[int, int]:
    """(answered, total) for ``irl_phase``, across all modules unless ``module`` is given."""
    answered = sum(
        1 for a in answers
        if a.irl_phase == irl_phase and (module is None or a.module == module)
    )
    total = catalog.count_questions(module=module, irl_phase=irl_phase)
    return answered, total


def record_answer(
    state: ProgressionState,
    answers: list,
    answer: Answer,
    catalog: QuestionCatalog,
    strategy: str = CROSS_MODULE,
    now: Optional[str] = None,
) -> list[UnlockRecord]:
    """Apply the unlock rule for the phase ``answer`` belongs to.

    ``answers`` must already contain ``answer``. Returns the records created by
    this call (empty when nothing new was unlocked). Catalog failures propagate
    as :class:`CatalogError`.
    """
    phase = answer.irl_phase
    if phase is None:
        return []
    if strategy not in (CROSS_MODULE, PER_MODULE):
        raise ValueError(f"Unknown unlock strategy: {strategy}")
    scope = answer.module if strategy == PER_MODULE else None

    answered, total = phase_counts(answers, catalog, phase, scope)
    label = f"{scope.value}-{phase.value}" if scope else phase.value
    if total == 0 or answered < total:
        logger.debug("Phase %s not yet complete (%d/%d)", label, answered, total)
        return []

    next_phase = phase.successor
    if next_phase is None:
        logger.debug("Phase %s is the final phase, nothing to unlock", label)
        return []

    candidates = catalog.modules_with_questions(next_phase)
    if scope is not None:
        candidates = [m for m in candidates if m == scope]
    if not candidates:
        logger.info("No questions in %s, skipping unlock", next_phase.value)
        return []

    now = now or _now()
    created = []
    for module in candidates:
        if not has_unlock_record(state, module, next_phase):
            record = UnlockRecord(module, next_phase, now)
            state.unlocked_phases.append(record)
            created.append(record)
    if created:
        logger.info(
            "Phase %s complete: unlocked %s for %s",
            label, next_phase.value, ", ".join(r.module.value for r in created),
        )
    return created


def first_populated_family(
    module: Module, irl_phase: IrlPhase, populated: list
) -> Optional[QuestionFamily]:
    for family in QuestionFamily:
        if Axis(module, irl_phase, family) in populated:
            return family
    return None


def navigate(
    state: ProgressionState,
    catalog: QuestionCatalog,
    module: Module,
    irl_phase: IrlPhase,
    question_family: Optional[QuestionFamily] = None,
    elevated: bool = False,
) -> Axis:
    """Move the current position to a reachable, populated axis.

    Raises NotUnlockedError for a locked phase (unless ``elevated``) and
    ValidationError when the target holds no questions.
    """
    if not (elevated or is_reachable(state, module, irl_phase)):
        raise NotUnlockedError(module, irl_phase)
    populated = catalog.populated_axes()
    if question_family is None:
        question_family = first_populated_family(module, irl_phase, populated)
        if question_family is None:
            raise ValidationError(f"No questions for {module.value}-{irl_phase.value}")
    target = Axis(module, irl_phase, question_family)
    if target not in populated:
        raise ValidationError(f"No questions for {target}")
    state.current_module = module
    state.current_irl_phase = irl_phase
    state.current_question_family = question_family
    logger.info("Navigated to %s", target)
    return target


def is_module_completed(module: Module, answered_ids: set, by_axis: dict) -> bool:
    axes = [a for a in by_axis if a.module == module]
    return bool(axes) and all(by_axis[a] <= answered_ids for a in axes)


def refresh_completed_modules(
    state: ProgressionState, answered_ids: set, catalog: QuestionCatalog
) -> list[Module]:
    """Append newly completed modules to the state; returns them."""
    by_axis = questions_by_axis(catalog)
    newly = []
    for module in Module:
        if module not in state.completed_modules and is_module_completed(module, answered_ids, by_axis):
            state.completed_modules.append(module)
            newly.append(module)
    if newly:
        logger.info("Modules completed: %s", ", ".join(m.value for m in newly))
    return newly


def advance(
    state: ProgressionState, answered_ids: set, catalog: QuestionCatalog
) -> Optional[Axis]:
    """Move off a fully answered axis to the next open one.

    Candidates are visited in vocabulary order (family, then phase, then
    module) starting just after the current axis and wrapping around. Locked
    phases are skipped. Returns the new axis, or None if the position is
    unchanged.
    """
    by_axis = questions_by_axis(catalog)
    current = state.current_axis
    if by_axis.get(current, set()) - answered_ids:
        return None
    start = ALL_AXES.index(current) + 1
    for axis in ALL_AXES[start:] + ALL_AXES[:start]:
        if by_axis.get(axis, set()) - answered_ids and is_reachable(state, axis.module, axis.irl_phase):
            state.current_module = axis.module
            state.current_irl_phase = axis.irl_phase
            state.current_question_family = axis.question_family
            logger.info("Advanced from %s to %s", current, axis)
            return axis
    return None


def is_terminal(answered_ids: set, catalog: QuestionCatalog) -> bool:
    """True once every populated axis across all modules is fully answered."""
    by_axis = questions_by_axis(catalog)
    return bool(by_axis) and all(ids <= answered_ids for ids in by_axis.values())


@dataclass
class PhaseProgress:
    module: Module
    irl_phase: IrlPhase
    questions_total: int
    questions_answered: int
    exact_score: float
    unlocked: bool
    threshold: float = PROGRESSION_THRESHOLD

    @property
    def score(self) -> float:
        return round(self.exact_score, 2)

    @property
    def completed(self) -> bool:
        return self.questions_answered >= self.questions_total

    @property
    def can_progress(self) -> bool:
        return self.exact_score >= self.threshold


@dataclass
class ModuleProgress:
    module: Module
    phases: dict = field(default_factory=dict)  # {IrlPhase: PhaseProgress}
    score: float = 0.0
    answered_questions: int = 0

    @property
    def total_questions(self) -> int:
        return sum(p.questions_total for p in self.phases.values())

    @property
    def completed(self) -> bool:
        return bool(self.phases) and all(p.completed for p in self.phases.values())


@dataclass
class ProgressReport:
    current_axis: Axis
    modules: dict = field(default_factory=dict)  # {Module: ModuleProgress}
    answered_questions: int = 0

    @property
    def total_modules(self) -> int:
        return len(Module)

    @property
    def completed_modules(self) -> int:
        return sum(1 for m in self.modules.values() if m.completed)

    @property
    def total_phases(self) -> int:
        return sum(len(m.phases) for m in self.modules.values())

    @property
    def completed_phases(self) -> int:
        return sum(1 for m in self.modules.values() for p in m.phases.values() if p.completed)

    @property
    def total_questions(self) -> int:
        return sum(m.total_questions for m in self.modules.values())

    @property
    def percentage(self) -> int:
        if not self.total_phases:
            return 0
        return round(self.completed_phases / self.total_phases * 100)


def build_progress_report(
    state: ProgressionState,
    answers: list,
    catalog: QuestionCatalog,
    threshold: float = PROGRESSION_THRESHOLD,
) -> ProgressReport:
    by_axis = questions_by_axis(catalog)
    report = ProgressReport(current_axis=state.current_axis, answered_questions=len(answers))
    for module in Module:
        module_answers = [a for a in answers if a.module == module]
        progress = ModuleProgress(
            module=module,
            score=score_answers(module_answers).score,
            answered_questions=len(module_answers),
        )
        for phase in IrlPhase:
            ids = set()
            for axis, axis_ids in by_axis.items():
                if axis.module == module and axis.irl_phase == phase:
                    ids |= axis_ids
            if not ids:
                continue
            phase_answers = [a for a in module_answers if a.irl_phase == phase]
            progress.phases[phase] = PhaseProgress(
                module=module,
                irl_phase=phase,
                questions_total=len(ids),
                questions_answered=len(phase_answers),
                exact_score=score_answers(phase_answers).exact_score,
                unlocked=is_reachable(state, module, phase),
                threshold=threshold,
            )
        report.modules[module] = progress
    return report
