"""Maturity scoring over recorded answers.

All scores live on the 0-3 option scale. An aggregate's score is the share of
the points it could have earned, renormalised to that scale::

    score          = (sum(score) / sum(3)) * 3
    weighted_score = (sum(score * criticality) / sum(3 * criticality)) * 3

Nothing here touches storage: :func:`compute_scores` is a pure reduction over
the answer list, so a session's scores can always be rebuilt from its answers.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from irl_maturity.models import MAX_OPTION_VALUE, Answer, IrlPhase, Module

M3_THRESHOLD = 2.4
M2_THRESHOLD = 1.7
PROGRESSION_THRESHOLD = M3_THRESHOLD


def maturity_level(score: float) -> str:
    """Level for an unrounded 0-3 score; displayed scores are rounded separately."""
    if score >= M3_THRESHOLD:
        return "M3"
    elif score >= M2_THRESHOLD:
        return "M2"
    return "M1"


def _exact_ratio(earned: float, possible: float) -> float:
    if not possible:
        return 0.0
    return earned * MAX_OPTION_VALUE / possible


def _ratio(earned: float, possible: float) -> float:
    return round(_exact_ratio(earned, possible), 2)


def _percent(earned: float, possible: float) -> float:
    if not possible:
        return 0.0
    return round(earned / possible * 100, 1)


@dataclass
class ScoreAggregate:
    key: object = None
    raw_score: int = 0
    raw_weighted_score: int = 0
    questions_answered: int = 0
    max_possible_score: int = 0
    max_possible_weighted_score: int = 0

    def add(self, answer: Answer) -> None:
        criticality = answer.criticality or 1
        self.raw_score += answer.score
        self.raw_weighted_score += answer.score * criticality
        self.questions_answered += 1
        self.max_possible_score += MAX_OPTION_VALUE
        self.max_possible_weighted_score += MAX_OPTION_VALUE * criticality

    @property
    def score(self) -> float:
        return _ratio(self.raw_score, self.max_possible_score)

    @property
    def exact_score(self) -> float:
        return _exact_ratio(self.raw_score, self.max_possible_score)

    @property
    def weighted_score(self) -> float:
        return _ratio(self.raw_weighted_score, self.max_possible_weighted_score)

    @property
    def percentage(self) -> float:
        return _percent(self.raw_score, self.max_possible_score)

    @property
    def weighted_percentage(self) -> float:
        return _percent(self.raw_weighted_score, self.max_possible_weighted_score)

    @property
    def maturity_level(self) -> str:
        return maturity_level(self.exact_score)


@dataclass
class PhaseScore(ScoreAggregate):
    """Score of one (module, phase) pair, broken down by question family."""
    module: Optional[Module] = None
    irl_phase: Optional[IrlPhase] = None
    family_scores: dict = field(default_factory=dict)  # {QuestionFamily: ScoreAggregate}

    def add(self, answer: Answer) -> None:
        super().add(answer)
        if answer.question_family is not None:
            family = self.family_scores.setdefault(
                answer.question_family, ScoreAggregate(key=answer.question_family)
            )
            family.add(answer)

    def can_proceed(self, threshold: float = PROGRESSION_THRESHOLD) -> bool:
        return self.exact_score >= threshold


@dataclass
class ScoreResult:
    overall: ScoreAggregate
    category_scores: list = field(default_factory=list)
    module_scores: list = field(default_factory=list)
    phase_scores: list = field(default_factory=list)

    @property
    def overall_score(self) -> float:
        return self.overall.score

    @property
    def overall_weighted_score(self) -> float:
        return self.overall.weighted_score

    @property
    def overall_percentage(self) -> float:
        return self.overall.weighted_percentage

    @property
    def maturity_level(self) -> str:
        return self.overall.maturity_level

    @property
    def weakest_category(self) -> Optional[ScoreAggregate]:
        if not self.category_scores:
            return None
        return min(self.category_scores, key=lambda c: c.weighted_percentage)

    @property
    def strongest_category(self) -> Optional[ScoreAggregate]:
        if not self.category_scores:
            return None
        return max(self.category_scores, key=lambda c: c.weighted_percentage)

    def phase(self, module: Module, irl_phase: IrlPhase) -> Optional[PhaseScore]:
        for p in self.phase_scores:
            if p.module == module and p.irl_phase == irl_phase:
                return p
        return None


def compute_scores(answers: Iterable[Answer]) -> ScoreResult:
    """Aggregate ``answers`` overall and per category, module and (module, phase)."""
    overall = ScoreAggregate(key="overall")
    categories: dict = {}
    modules: dict = {}
    phases: dict = {}

    for answer in answers:
        overall.add(answer)
        if answer.category_id is not None:
            categories.setdefault(answer.category_id, ScoreAggregate(key=answer.category_id)).add(answer)
        if answer.module is not None:
            modules.setdefault(answer.module, ScoreAggregate(key=answer.module)).add(answer)
            if answer.irl_phase is not None:
                key = (answer.module, answer.irl_phase)
                if key not in phases:
                    phases[key] = PhaseScore(key=key, module=answer.module, irl_phase=answer.irl_phase)
                phases[key].add(answer)

    module_order = list(Module)
    phase_order = list(IrlPhase)
    return ScoreResult(
        overall=overall,
        category_scores=sorted(categories.values(), key=lambda c: c.key),
        module_scores=sorted(modules.values(), key=lambda m: module_order.index(m.key)),
        phase_scores=sorted(
            phases.values(),
            key=lambda p: (module_order.index(p.module), phase_order.index(p.irl_phase)),
        ),
    )


def score_answers(answers: Iterable[Answer]) -> ScoreAggregate:
    """Single aggregate over ``answers``; used for ad-hoc slices such as one phase."""
    aggregate = ScoreAggregate()
    for answer in answers:
        aggregate.add(answer)
    return aggregate
