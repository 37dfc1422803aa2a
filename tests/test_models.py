from irl_maturity.models import (
    Answer, AssessmentSession, AssessmentType, Axis, IrlPhase, Module, Option, Question,
    QuestionFamily,
)


def test_axis_values_are_preserved_verbatim():
    assert [m.value for m in Module] == ["PM", "Engineering", "HSE", "O&M_DOI"]
    assert [p.value for p in IrlPhase] == ["IRL1", "IRL2", "IRL3", "IRL4", "IRL5", "IRL6"]
    assert QuestionFamily("Gouvernance_Pilotage") == QuestionFamily.GOUVERNANCE_PILOTAGE


def test_phase_successor():
    assert IrlPhase.IRL1.successor == IrlPhase.IRL2
    assert IrlPhase.IRL5.successor == IrlPhase.IRL6
    assert IrlPhase.IRL6.successor is None


def test_axis_str():
    axis = Axis(Module.OM_DOI, IrlPhase.IRL2, QuestionFamily.OUTILS_DIGITAL)
    assert str(axis) == "O&M_DOI-IRL2-Outils_Digital"


def test_question_axis_and_options():
    q = Question(
        id=1, text="?", category_id=1, options=(Option(1, "a"), Option(3, "c")),
        assessment_type="deep", module=Module.PM, irl_phase=IrlPhase.IRL1,
        question_family=QuestionFamily.RISQUES_CONFORMITE, criticality=2,
    )
    assert q.axis == Axis(Module.PM, IrlPhase.IRL1, QuestionFamily.RISQUES_CONFORMITE)
    assert q.weighted_max_score == 6
    assert q.criticality_label == "Moyenne"
    assert q.option_for(3).text == "c"
    assert q.option_for(2) is None
    assert q.is_available_for(AssessmentType.DEEP)
    assert not q.is_available_for(AssessmentType.QUICK)


def test_quick_question_has_no_axis():
    q = Question(id=1, text="?", category_id=1)
    assert q.axis is None
    assert q.is_available_for(AssessmentType.QUICK)
    assert q.is_available_for(AssessmentType.DEEP)


def test_answer_weighted_score():
    assert Answer(question_id=1, selected_value=2, score=2, criticality=3).weighted_score == 6


def test_merge_answer_replaces_existing():
    session = AssessmentSession(id=None, project_id=1, assessed_by="alice", type=AssessmentType.QUICK)
    assert session.merge_answer(Answer(question_id=5, selected_value=1, score=1)) is True
    assert session.merge_answer(Answer(question_id=5, selected_value=3, score=3)) is False
    assert len(session.answers) == 1
    assert session.find_answer(5).score == 3
    assert session.answered_ids == {5}


def test_session_defaults():
    session = AssessmentSession(id=None, project_id=1, assessed_by="alice", type=AssessmentType.DEEP)
    assert session.is_deep
    assert session.version == 0
    assert session.overall_score == 0.0
    assert session.maturity_level is None
