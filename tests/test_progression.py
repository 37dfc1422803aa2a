# tests/test_progression.py
from unittest.mock import patch

import pytest

from irl_maturity import progression
from irl_maturity.catalog import QuestionCatalog
from irl_maturity.db import init_db
from irl_maturity.errors import CatalogError, NotUnlockedError, ValidationError
from irl_maturity.models import Answer, Axis, IrlPhase, Module, QuestionFamily
from irl_maturity.seed import insert_category, insert_question

OPTIONS = [(1, "Non"), (2, "Partiellement"), (3, "Oui")]

START = Axis(Module.PM, IrlPhase.IRL1, QuestionFamily.GOUVERNANCE_PILOTAGE)


def _answer(catalog, question_id, value=3):
    q = catalog.get_question(question_id)
    return Answer(
        question_id=q.id, selected_value=value, score=value, category_id=q.category_id,
        criticality=q.criticality, module=q.module, irl_phase=q.irl_phase,
        question_family=q.question_family,
    )


def _answer_all(state, catalog, question_ids, strategy=progression.CROSS_MODULE):
    answers = []
    created = []
    for qid in question_ids:
        answer = _answer(catalog, qid)
        answers.append(answer)
        created += progression.record_answer(state, answers, answer, catalog, strategy=strategy)
    return answers, created


def _unlocked(state, phase):
    return {r.module for r in state.unlocked_phases if r.irl_phase == phase}


def test_initial_progression_unlocks_irl1_everywhere():
    state = progression.initial_progression(START, now="2026-01-01T00:00:00")
    assert state.current_axis == START
    assert _unlocked(state, IrlPhase.IRL1) == set(Module)
    assert _unlocked(state, IrlPhase.IRL2) == set()


def test_cross_module_unlock_waits_for_every_module(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    _, created = _answer_all(state, catalog, bank["pm1"])
    assert created == []
    assert _unlocked(state, IrlPhase.IRL2) == set()

    _, created = _answer_all(state, catalog, bank["pm1"] + bank["eng1"])
    assert {r.module for r in created} == {Module.PM, Module.ENGINEERING}
    assert _unlocked(state, IrlPhase.IRL2) == {Module.PM, Module.ENGINEERING}


def test_per_module_unlock_only_scopes_to_the_answered_module(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    _, created = _answer_all(state, catalog, bank["pm1"], strategy=progression.PER_MODULE)
    assert [(r.module, r.irl_phase) for r in created] == [(Module.PM, IrlPhase.IRL2)]
    assert _unlocked(state, IrlPhase.IRL2) == {Module.PM}


def test_unlock_only_for_modules_with_questions_in_next_phase(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    _answer_all(state, catalog, bank["pm1"] + bank["eng1"])
    assert Module.HSE not in _unlocked(state, IrlPhase.IRL2)
    assert Module.OM_DOI not in _unlocked(state, IrlPhase.IRL2)


def test_unlock_evaluated_twice_creates_no_duplicates(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    answers, _ = _answer_all(state, catalog, bank["pm1"] + bank["eng1"])
    again = progression.record_answer(state, answers, answers[-1], catalog)
    assert again == []
    assert len([r for r in state.unlocked_phases if r.irl_phase == IrlPhase.IRL2]) == 2


def test_last_phase_unlocks_nothing(tmp_db):
    init_db(tmp_db)
    cat = insert_category(tmp_db, "GOV", "Gouvernance")
    qid = insert_question(tmp_db, cat, "?", OPTIONS, assessment_type="deep",
                          module="PM", irl_phase="IRL6", question_family="Outils_Digital")
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    _, created = _answer_all(state, catalog, [qid])
    assert created == []


@pytest.mark.parametrize("with_irl2,expected", [(True, {Module.PM}), (False, set())])
def test_pm_irl1_two_questions_scenario(tmp_db, with_irl2, expected):
    init_db(tmp_db)
    cat = insert_category(tmp_db, "GOV", "Gouvernance")
    pm1 = [
        insert_question(tmp_db, cat, "a", OPTIONS, assessment_type="deep",
                        module="PM", irl_phase="IRL1", question_family="Gouvernance_Pilotage"),
        insert_question(tmp_db, cat, "b", OPTIONS, assessment_type="deep",
                        module="PM", irl_phase="IRL1", question_family="Risques_Conformite"),
    ]
    if with_irl2:
        insert_question(tmp_db, cat, "c", OPTIONS, assessment_type="deep",
                        module="PM", irl_phase="IRL2", question_family="Gouvernance_Pilotage")
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    _answer_all(state, catalog, pm1)
    assert _unlocked(state, IrlPhase.IRL2) == expected


def test_catalog_failure_propagates_from_record_answer(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    answer = _answer(catalog, bank["pm1"][0])
    with patch.object(QuestionCatalog, "count_questions", side_effect=CatalogError("down")):
        with pytest.raises(CatalogError):
            progression.record_answer(state, [answer], answer, catalog)


def test_unknown_strategy_rejected(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    answer = _answer(catalog, bank["pm1"][0])
    with pytest.raises(ValueError):
        progression.record_answer(state, [answer], answer, catalog, strategy="sideways")


def test_navigate_to_locked_phase_is_rejected(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    with pytest.raises(NotUnlockedError):
        progression.navigate(state, catalog, Module.PM, IrlPhase.IRL2)
    assert state.current_axis == START


def test_navigate_elevated_bypasses_lock(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    target = progression.navigate(state, catalog, Module.ENGINEERING, IrlPhase.IRL2, elevated=True)
    assert target == Axis(Module.ENGINEERING, IrlPhase.IRL2, QuestionFamily.GOUVERNANCE_PILOTAGE)
    assert state.current_axis == target
    assert _unlocked(state, IrlPhase.IRL2) == set()


def test_navigate_to_irl1_always_allowed(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    state.unlocked_phases = []
    progression.navigate(state, catalog, Module.ENGINEERING, IrlPhase.IRL1)
    assert state.current_module == Module.ENGINEERING


def test_navigate_to_empty_axis_is_rejected(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    with pytest.raises(ValidationError):
        progression.navigate(state, catalog, Module.HSE, IrlPhase.IRL1)
    with pytest.raises(ValidationError):
        progression.navigate(state, catalog, Module.PM, IrlPhase.IRL1, QuestionFamily.OUTILS_DIGITAL)


def test_navigate_after_unlock(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    _answer_all(state, catalog, bank["pm1"], strategy=progression.PER_MODULE)
    target = progression.navigate(state, catalog, Module.PM, IrlPhase.IRL2)
    assert target.irl_phase == IrlPhase.IRL2


def test_advance_moves_to_next_open_axis(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    answered = {bank["pm1"][0]}
    moved = progression.advance(state, answered, catalog)
    assert moved == Axis(Module.PM, IrlPhase.IRL1, QuestionFamily.LIVRABLES_STRUCTURANTS)


def test_advance_skips_locked_phases(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    answered = set(bank["pm1"])
    state.current_question_family = QuestionFamily.LIVRABLES_STRUCTURANTS
    moved = progression.advance(state, answered, catalog)
    # PM-IRL2 is still locked
    assert moved == Axis(Module.ENGINEERING, IrlPhase.IRL1, QuestionFamily.GOUVERNANCE_PILOTAGE)


def test_advance_stays_put_while_axis_open(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    assert progression.advance(state, set(), catalog) is None
    assert state.current_axis == START


def test_module_completion_and_terminal(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    answered = set(bank["pm1"] + bank["pm2"])
    assert progression.refresh_completed_modules(state, answered, catalog) == [Module.PM]
    assert progression.refresh_completed_modules(state, answered, catalog) == []
    assert not progression.is_terminal(answered, catalog)
    everything = answered | set(bank["eng1"] + bank["eng2"])
    assert progression.is_terminal(everything, catalog)


def test_progress_report(tmp_db, bank):
    catalog = QuestionCatalog(tmp_db)
    state = progression.initial_progression(START)
    answers, _ = _answer_all(state, catalog, bank["pm1"], strategy=progression.PER_MODULE)
    report = progression.build_progress_report(state, answers, catalog)
    pm = report.modules[Module.PM]
    assert pm.phases[IrlPhase.IRL1].completed
    assert pm.phases[IrlPhase.IRL1].can_progress
    assert pm.phases[IrlPhase.IRL2].unlocked
    assert not report.modules[Module.ENGINEERING].phases[IrlPhase.IRL2].unlocked
    assert report.modules[Module.HSE].phases == {}
    assert report.total_phases == 4
    assert report.completed_phases == 1
    assert report.percentage == 25
    assert report.total_questions == 5
    assert report.answered_questions == 2


def test_phase_progress_judged_on_unrounded_score():
    phase = progression.PhaseProgress(
        module=Module.PM, irl_phase=IrlPhase.IRL1, questions_total=53, questions_answered=53,
        exact_score=127 / 53, unlocked=True,
    )
    assert phase.score == 2.4
    assert not phase.can_progress
