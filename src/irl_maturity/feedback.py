"""Narrative feedback: strengths, weak areas and next steps for a score result."""
from dataclasses import dataclass, field

from irl_maturity.models import AssessmentType
from irl_maturity.scoring import ScoreResult

STRONG_AVERAGE = 2.0
WEAK_AVERAGE = 1.5


@dataclass
class Feedback:
    summary: str = ""
    strengths: list = field(default_factory=list)
    improvements: list = field(default_factory=list)
    next_steps: list = field(default_factory=list)
    module_recommendations: list = field(default_factory=list)
    phase_tips: list = field(default_factory=list)


def _average(aggregate) -> float:
    if not aggregate.questions_answered:
        return 0.0
    return aggregate.raw_score / aggregate.questions_answered


def get_weak_categories(result: ScoreResult, category_names: dict, threshold: float = WEAK_AVERAGE) -> list[dict]:
    """Categories whose average answer is below ``threshold`` (worst first)."""
    weak = [
        {
            "category_id": c.key,
            "name": category_names.get(c.key, "Category"),
            "average": round(_average(c), 1),
            "questions_answered": c.questions_answered,
        }
        for c in result.category_scores
        if _average(c) < threshold
    ]
    return sorted(weak, key=lambda w: w["average"])


def generate_feedback(result: ScoreResult, assessment_type: AssessmentType, category_names: dict = None) -> Feedback:
    category_names = category_names or {}
    level = result.maturity_level
    feedback = Feedback()

    if level == "M3":
        feedback.summary = (
            "Excellent! Your project demonstrates high maturity across most evaluation criteria. "
            "You have established strong foundations and processes."
        )
        feedback.next_steps += [
            "Focus on maintaining current standards and continuous improvement",
            "Consider sharing best practices with other teams",
            "Monitor and refine existing processes",
        ]
    elif level == "M2":
        feedback.summary = (
            "Good progress! Your project has a solid foundation with clear opportunities "
            "for enhancement in specific areas."
        )
        feedback.next_steps += [
            "Identify and prioritize key improvement areas",
            "Develop structured action plans for enhancement",
            "Establish regular monitoring and review cycles",
        ]
    else:
        feedback.summary = (
            "Your project is in early development stages. Focus on building fundamental "
            "capabilities and establishing core processes."
        )
        feedback.next_steps += [
            "Prioritize basic project structure and governance",
            "Establish clear documentation and communication processes",
            "Build foundational capabilities before advancing to complex areas",
        ]

    for c in result.category_scores:
        avg = _average(c)
        name = category_names.get(c.key, "Category")
        if avg >= STRONG_AVERAGE:
            feedback.strengths.append(f"Strong performance in {name} ({avg:.1f}/3.0)")
        elif avg < WEAK_AVERAGE:
            feedback.improvements.append(f"{name} needs attention ({avg:.1f}/3.0)")
            lowered = name.lower()
            if "gouvernance" in lowered or "governance" in lowered:
                feedback.next_steps.append("Establish clear project governance structure and decision-making processes")
            elif "risque" in lowered or "risk" in lowered:
                feedback.next_steps.append("Implement systematic risk identification and mitigation strategies")
            elif "livrable" in lowered or "planning" in lowered:
                feedback.next_steps.append("Develop comprehensive project planning and scheduling frameworks")

    for m in result.module_scores:
        if _average(m) >= STRONG_AVERAGE:
            feedback.module_recommendations.append(
                f"{m.key.value}: Maintain current high standards and consider advanced practices"
            )
        else:
            feedback.module_recommendations.append(
                f"{m.key.value}: Focus on building foundational capabilities and processes"
            )

    if assessment_type == AssessmentType.DEEP:
        feedback.phase_tips += [
            "IRL1: Focus on establishing basic project framework and initial planning",
            "IRL2-3: Develop detailed specifications and design validation",
            "IRL4-6: Emphasize implementation readiness and operational preparation",
        ]

    feedback.strengths = feedback.strengths[:5]
    feedback.improvements = feedback.improvements[:5]
    feedback.next_steps = feedback.next_steps[:7]
    feedback.module_recommendations = feedback.module_recommendations[:4]
    return feedback
