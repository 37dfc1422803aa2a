"""Data classes and closed vocabularies for the assessment domain."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Module(str, Enum):
    PM = "PM"
    ENGINEERING = "Engineering"
    HSE = "HSE"
    OM_DOI = "O&M_DOI"

    @property
    def label(self) -> str:
        return MODULE_LABELS[self]


class IrlPhase(str, Enum):
    IRL1 = "IRL1"
    IRL2 = "IRL2"
    IRL3 = "IRL3"
    IRL4 = "IRL4"
    IRL5 = "IRL5"
    IRL6 = "IRL6"

    @property
    def ordinal(self) -> int:
        return list(IrlPhase).index(self)

    @property
    def successor(self) -> Optional["IrlPhase"]:
        phases = list(IrlPhase)
        i = self.ordinal
        return phases[i + 1] if i < len(phases) - 1 else None

    @property
    def label(self) -> str:
        return IRL_PHASE_LABELS[self]


class QuestionFamily(str, Enum):
    GOUVERNANCE_PILOTAGE = "Gouvernance_Pilotage"
    LIVRABLES_STRUCTURANTS = "Livrables_Structurants"
    METHODOLOGIE_PROCESS = "Methodologie_Process"
    OUTILS_DIGITAL = "Outils_Digital"
    RISQUES_CONFORMITE = "Risques_Conformite"
    MODULE_SPECIFIQUE = "Module_Specifique"

    @property
    def label(self) -> str:
        return FAMILY_LABELS[self]


class AssessmentType(str, Enum):
    QUICK = "quick"
    DEEP = "deep"


class AssessmentStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


MODULE_LABELS = {
    Module.PM: "Project Management",
    Module.ENGINEERING: "Ingénierie",
    Module.HSE: "HSE",
    Module.OM_DOI: "O&M / DOI",
}

IRL_PHASE_LABELS = {
    IrlPhase.IRL1: "IRL 1 - Observation des principes de base",
    IrlPhase.IRL2: "IRL 2 - Formulation du concept technologique",
    IrlPhase.IRL3: "IRL 3 - Preuve de concept analytique et expérimentale",
    IrlPhase.IRL4: "IRL 4 - Validation de la technologie en laboratoire",
    IrlPhase.IRL5: "IRL 5 - Validation de la technologie en environnement représentatif",
    IrlPhase.IRL6: "IRL 6 - Démonstration de la technologie en environnement opérationnel",
}

FAMILY_LABELS = {
    QuestionFamily.GOUVERNANCE_PILOTAGE: "Gouvernance & Pilotage",
    QuestionFamily.LIVRABLES_STRUCTURANTS: "Livrables Structurants",
    QuestionFamily.METHODOLOGIE_PROCESS: "Méthodologie / Process",
    QuestionFamily.OUTILS_DIGITAL: "Outils et Digital",
    QuestionFamily.RISQUES_CONFORMITE: "Risques et Conformité",
    QuestionFamily.MODULE_SPECIFIQUE: "Spécifique au Module",
}

CRITICALITY_LABELS = {1: "Faible", 2: "Moyenne", 3: "Élevée"}

MAX_OPTION_VALUE = 3


@dataclass(frozen=True)
class Axis:
    module: Module
    irl_phase: IrlPhase
    question_family: QuestionFamily

    def __str__(self) -> str:
        return f"{self.module.value}-{self.irl_phase.value}-{self.question_family.value}"


@dataclass(frozen=True)
class Option:
    value: int
    text: str


@dataclass(frozen=True)
class Question:
    id: int
    text: str
    category_id: int
    options: tuple = ()
    assessment_type: str = "both"
    module: Optional[Module] = None
    irl_phase: Optional[IrlPhase] = None
    question_family: Optional[QuestionFamily] = None
    criticality: int = 1
    sort_order: int = 0
    description: str = ""
    is_active: bool = True

    @property
    def axis(self) -> Optional[Axis]:
        if self.module is None or self.irl_phase is None or self.question_family is None:
            return None
        return Axis(self.module, self.irl_phase, self.question_family)

    @property
    def weighted_max_score(self) -> int:
        return MAX_OPTION_VALUE * self.criticality

    @property
    def criticality_label(self) -> str:
        return CRITICALITY_LABELS.get(self.criticality, "Non définie")

    def option_for(self, value: int) -> Optional[Option]:
        for option in self.options:
            if option.value == value:
                return option
        return None

    def is_available_for(self, assessment_type: "AssessmentType") -> bool:
        return self.assessment_type in (assessment_type.value, "both")


@dataclass
class Answer:
    question_id: int
    selected_value: int
    score: int
    category_id: Optional[int] = None
    criticality: int = 1
    module: Optional[Module] = None
    irl_phase: Optional[IrlPhase] = None
    question_family: Optional[QuestionFamily] = None
    time_spent_seconds: int = 0
    answered_at: Optional[str] = None

    @property
    def weighted_score(self) -> int:
        return self.score * self.criticality


@dataclass
class UnlockRecord:
    module: Module
    irl_phase: IrlPhase
    unlocked_at: str


@dataclass
class ProgressionState:
    current_module: Module
    current_irl_phase: IrlPhase
    current_question_family: QuestionFamily
    unlocked_phases: list = field(default_factory=list)  # [UnlockRecord]
    completed_modules: list = field(default_factory=list)  # [Module]

    @property
    def current_axis(self) -> Axis:
        return Axis(self.current_module, self.current_irl_phase, self.current_question_family)


@dataclass
class AssessmentSession:
    id: Optional[int]
    project_id: int
    assessed_by: str
    type: AssessmentType
    status: AssessmentStatus = AssessmentStatus.IN_PROGRESS
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    completed_at: Optional[str] = None
    answers: list = field(default_factory=list)  # [Answer]
    progression: Optional[ProgressionState] = None
    question_ids: list = field(default_factory=list)  # quick sessions only
    result: Optional[object] = None  # scoring.ScoreResult once completed
    version: int = 0

    @property
    def is_deep(self) -> bool:
        return self.type == AssessmentType.DEEP

    @property
    def answered_ids(self) -> set:
        return {a.question_id for a in self.answers}

    @property
    def overall_score(self) -> float:
        return self.result.overall_score if self.result else 0.0

    @property
    def maturity_level(self) -> Optional[str]:
        return self.result.maturity_level if self.result else None

    @property
    def category_scores(self) -> list:
        return self.result.category_scores if self.result else []

    @property
    def module_scores(self) -> list:
        return self.result.module_scores if self.result else []

    def find_answer(self, question_id: int) -> Optional[Answer]:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    def merge_answer(self, answer: Answer) -> bool:
        """Store ``answer``, replacing any earlier answer to the same question.

        Returns True if the question had not been answered before.
        """
        for i, existing in enumerate(self.answers):
            if existing.question_id == answer.question_id:
                self.answers[i] = answer
                return False
        self.answers.append(answer)
        return True
