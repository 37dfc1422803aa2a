import pytest
from unittest.mock import patch

from irl_maturity.app import (
    SessionExitRequested, cmd_deep, cmd_new, cmd_quick, level_color, main, maturity_color,
    run_question_batch, session_int_prompt, session_prompt,
)
from irl_maturity.config import Settings
from irl_maturity.models import AssessmentType
from irl_maturity.projects import get_project, list_projects
from irl_maturity.scoring import M2_THRESHOLD, M3_THRESHOLD, maturity_level
from irl_maturity.session import start_assessment
from irl_maturity.store import load_session


def test_session_exit_requested_is_exception():
    with pytest.raises(SessionExitRequested):
        raise SessionExitRequested()


def test_session_prompt_raises_on_q():
    with patch("irl_maturity.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_raises_on_menu():
    with patch("irl_maturity.app.Prompt.ask", return_value="menu"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("irl_maturity.app.Prompt.ask", return_value="hello"):
        result = session_prompt("test prompt")
        assert result == "hello"


def test_session_int_prompt_returns_normal_input():
    with patch("irl_maturity.app.Prompt.ask", return_value="3"):
        result = session_int_prompt("answer", choices=["1", "2", "3"])
        assert result == 3


def test_maturity_color():
    assert maturity_color(2.5) == "green"
    assert maturity_color(2.0) == "yellow"
    assert maturity_color(0.5) == "red"


@pytest.mark.parametrize("score,color", [
    (M3_THRESHOLD, "green"), (2.3962, "yellow"), (M2_THRESHOLD, "yellow"), (1.6957, "red"),
])
def test_maturity_color_at_level_boundaries(score, color):
    assert maturity_color(score) == color
    assert level_color(maturity_level(score)) == color


def test_run_question_batch_exits_on_q(tmp_db, bank, project, settings):
    """First answer is saved before the user leaves with 'q'."""
    batch = start_assessment(tmp_db, project, "alice", AssessmentType.QUICK, settings=settings)
    with patch("irl_maturity.app.Prompt.ask", side_effect=["3", "q"]):
        with pytest.raises(SessionExitRequested):
            run_question_batch(tmp_db, batch, "alice", settings=settings)

    session = load_session(tmp_db, batch.session.id)
    assert session.answered_ids == {bank["quick"][0]}


def test_cmd_new_creates_project(tmp_db, bank):
    with patch("irl_maturity.app.Prompt.ask", return_value="Ligne B"):
        cmd_new(tmp_db, "carol")
    assert [(p["name"], p["owner"]) for p in list_projects(tmp_db)] == [("Ligne B", "carol")]


def test_cmd_quick_runs_and_completes(tmp_db, bank, project):
    with patch("irl_maturity.app.IntPrompt.ask", return_value=project), \
         patch("irl_maturity.app.Prompt.ask", side_effect=["3", "2"]):
        cmd_quick(tmp_db, "alice")
    stored = get_project(tmp_db, project)
    assert stored["quick_score"] == 2.5
    assert stored["status"] == "Quick Assessment Completed"


def test_cmd_deep_walks_every_unlocked_phase(tmp_db, bank, project):
    # PM-IRL1 x2, Engineering-IRL1 (unlocks IRL2), Engineering-IRL2, PM-IRL2
    with patch("irl_maturity.app.IntPrompt.ask", return_value=project), \
         patch("irl_maturity.app.Prompt.ask", side_effect=["PM", "3", "3", "3", "3", "3"]):
        cmd_deep(tmp_db, "alice")
    stored = get_project(tmp_db, project)
    assert stored["deep_completed"] == 1
    assert stored["deep_score"] == 3.0
    assert stored["deep_maturity"] == "M3"


def test_cmd_deep_leaves_session_in_progress_on_exit(tmp_db, bank, project):
    with patch("irl_maturity.app.IntPrompt.ask", return_value=project), \
         patch("irl_maturity.app.Prompt.ask", side_effect=["PM", "2", "menu"]):
        with pytest.raises(SessionExitRequested):
            cmd_deep(tmp_db, "alice")
    assert get_project(tmp_db, project)["status"] == "Deep Assessment In Progress"


def test_main_quits(tmp_db):
    settings = Settings(db_path=tmp_db, _env_file=None)
    with patch("irl_maturity.app.get_settings", return_value=settings), \
         patch("irl_maturity.app.Prompt.ask", side_effect=["alice", "projects", "quit"]):
        main()
    assert list_projects(tmp_db) == []


def test_main_reports_errors_and_continues(tmp_db):
    settings = Settings(db_path=tmp_db, _env_file=None)
    # 'quick' with no projects raises an AssessmentError that the loop reports
    with patch("irl_maturity.app.get_settings", return_value=settings), \
         patch("irl_maturity.app.Prompt.ask", side_effect=["alice", "quick", "quit"]):
        main()
