import pytest

from irl_maturity.config import Settings
from irl_maturity.db import init_db
from irl_maturity.models import AssessmentType
from irl_maturity.projects import create_project, notify_project_completion
from irl_maturity.seed import insert_category, insert_question

OPTIONS = [(1, "Non"), (2, "Partiellement"), (3, "Oui")]


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_assessments.db")
    return db_path


@pytest.fixture
def settings(tmp_db):
    return Settings(db_path=tmp_db, _env_file=None)


@pytest.fixture
def bank(tmp_db):
    """A small question bank.

    quick: two questions in QCK
    deep:  PM-IRL1 (2 questions, two families), Engineering-IRL1 (1),
           PM-IRL2 (1), Engineering-IRL2 (1)
    """
    init_db(tmp_db)
    qck = insert_category(tmp_db, "QCK", "Générale", sort_order=1)
    gov = insert_category(tmp_db, "GOV", "Gouvernance & Pilotage", sort_order=2)
    liv = insert_category(tmp_db, "LIV", "Livrables Structurants", sort_order=3)

    ids = {}
    ids["quick"] = [
        insert_question(tmp_db, qck, "Scope défini ?", OPTIONS, assessment_type="quick", sort_order=1),
        insert_question(tmp_db, qck, "Charte projet ?", OPTIONS, assessment_type="quick", sort_order=2),
    ]
    ids["pm1"] = [
        insert_question(tmp_db, gov, "Équipe projet constituée ?", OPTIONS, assessment_type="deep",
                        module="PM", irl_phase="IRL1", question_family="Gouvernance_Pilotage", criticality=3),
        insert_question(tmp_db, liv, "Charte formalisée ?", OPTIONS, assessment_type="deep",
                        module="PM", irl_phase="IRL1", question_family="Livrables_Structurants", criticality=2),
    ]
    ids["eng1"] = [
        insert_question(tmp_db, gov, "Équipe technique ?", OPTIONS, assessment_type="deep",
                        module="Engineering", irl_phase="IRL1", question_family="Gouvernance_Pilotage",
                        criticality=3),
    ]
    ids["pm2"] = [
        insert_question(tmp_db, gov, "Comitologie en place ?", OPTIONS, assessment_type="deep",
                        module="PM", irl_phase="IRL2", question_family="Gouvernance_Pilotage", criticality=3),
    ]
    ids["eng2"] = [
        insert_question(tmp_db, gov, "Risques techniques analysés ?", OPTIONS, assessment_type="deep",
                        module="Engineering", irl_phase="IRL2", question_family="Gouvernance_Pilotage"),
    ]
    return ids


@pytest.fixture
def project(tmp_db, bank):
    """A project whose quick assessment is already done."""
    project_id = create_project(tmp_db, "Usine pilote", "alice")
    notify_project_completion(tmp_db, project_id, AssessmentType.QUICK, 2.0, "M2", "2026-01-01T00:00:00")
    return project_id
