"""Interactive CLI application."""
import logging
import time

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from irl_maturity.catalog import QuestionCatalog
from irl_maturity.config import get_settings
from irl_maturity.db import init_db
from irl_maturity.errors import AssessmentError
from irl_maturity.models import (
    AssessmentStatus, AssessmentType, IrlPhase, Module, QuestionFamily,
)
from irl_maturity.progression import is_terminal
from irl_maturity.projects import create_project, get_project, list_projects
from irl_maturity.scoring import compute_scores, maturity_level
from irl_maturity.seed import is_seeded, seed_all
from irl_maturity.session import (
    complete_assessment, get_feedback, get_progress, navigate,
    start_assessment, submit_answer,
)
from irl_maturity.store import list_sessions, load_session

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the user types q or menu during a question run."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list) -> int:
    # Prompt.ask rather than IntPrompt so q/menu are accepted alongside the choices
    answer = session_prompt(prompt, choices=list(choices) + list(EXIT_WORDS), show_choices=False)
    return int(answer)


LEVEL_COLORS = {"M3": "green", "M2": "yellow", "M1": "red"}


def level_color(level: str) -> str:
    return LEVEL_COLORS.get(level, "white")


def maturity_color(score: float) -> str:
    return level_color(maturity_level(score))


def show_welcome():
    console.print(Panel(
        "[bold]IRL Maturity Assessment[/bold]\n[dim]Quick and deep project readiness evaluation[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("projects", "List projects and their results"),
        ("new", "Create a project"),
        ("quick", "Run (or resume) a quick assessment"),
        ("deep", "Run (or resume) a deep assessment"),
        ("progress", "Deep assessment progress by module and phase"),
        ("navigate", "Jump to another module / phase"),
        ("results", "Scores and feedback"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def run_question_batch(db_path: str, batch, actor: str, settings=None) -> object:
    """Ask questions until the current position runs out; returns the last batch.

    Each answer is saved as soon as it is given, so leaving with q/menu loses nothing.
    """
    while batch.questions:
        question = batch.questions[0]
        title = str(batch.axis) if batch.axis else "Quick assessment"
        answered = batch.total - batch.remaining + 1
        body = question.text
        if batch.axis:
            body += f"\n[dim]Criticité : {question.criticality_label}[/dim]"
        console.print(Panel(body, title=f"{title} ({answered}/{batch.total})", border_style="cyan"))
        for option in question.options:
            console.print(f"  [cyan]{option.value})[/cyan] {option.text}")

        started = time.monotonic()
        value = session_int_prompt("\nYour answer", choices=[str(o.value) for o in question.options])
        elapsed = int(time.monotonic() - started)
        batch = submit_answer(
            db_path, batch.session.id, question.id, value,
            time_spent=elapsed, actor=actor, settings=settings,
        )
        for record in batch.unlocked:
            console.print(f"[green]Unlocked {record.module.value}-{record.irl_phase.value}[/green]")
    return batch


def _finish_if_done(db_path: str, batch, actor: str) -> None:
    session = batch.session
    if session.is_deep:
        done = is_terminal(session.answered_ids, QuestionCatalog(db_path))
    else:
        done = set(session.question_ids) <= session.answered_ids
    if not done:
        console.print("[dim]No open questions at this position. Use 'navigate' or 'progress'.[/dim]")
        return
    completed = complete_assessment(db_path, session.id, actor=actor)
    color = level_color(completed.maturity_level)
    console.print(
        f"[green]Assessment complete![/green] Score: [{color}]{completed.overall_score:.2f}/3 "
        f"({completed.maturity_level})[/{color}]"
    )


def _ask_project(db_path: str) -> int:
    projects = list_projects(db_path)
    if not projects:
        raise AssessmentError("No projects yet. Use 'new' to create one.")
    for p in projects:
        console.print(f"  [cyan]{p['id']}[/cyan]) {p['name']} [dim]({p['status']})[/dim]")
    return IntPrompt.ask("Select project", choices=[str(p["id"]) for p in projects])


def _ask_session(db_path: str, assessment_type=None) -> int:
    sessions = list_sessions(db_path)
    if assessment_type is not None:
        sessions = [s for s in sessions if s["type"] == assessment_type.value]
    if not sessions:
        raise AssessmentError("No assessments yet.")
    for s in sessions:
        console.print(
            f"  [cyan]{s['id']}[/cyan]) {s['project_name']} - {s['type']} "
            f"[dim]({s['status']}, {s['answered']} answers, {s['assessed_by']})[/dim]"
        )
    return IntPrompt.ask("Select assessment", choices=[str(s["id"]) for s in sessions])


def cmd_projects(db_path: str):
    projects = list_projects(db_path)
    if not projects:
        console.print("[yellow]No projects yet. Use 'new' to create one.[/yellow]")
        return
    table = Table(title="Projects")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Owner")
    table.add_column("Status")
    table.add_column("Quick", justify="right")
    table.add_column("Deep", justify="right")
    for p in projects:
        cells = []
        for prefix in ("quick", "deep"):
            if p[f"{prefix}_completed"]:
                color = level_color(p[f"{prefix}_maturity"])
                cells.append(f"[{color}]{p[f'{prefix}_score']:.2f} {p[f'{prefix}_maturity']}[/{color}]")
            else:
                cells.append("[dim]-[/dim]")
        table.add_row(str(p["id"]), p["name"], p["owner"], p["status"], *cells)
    console.print(table)


def cmd_new(db_path: str, assessor: str):
    name = Prompt.ask("Project name").strip()
    if not name:
        console.print("[red]A project needs a name.[/red]")
        return
    project_id = create_project(db_path, name, assessor)
    console.print(f"[green]Created project {project_id}: {name}[/green]")


def cmd_quick(db_path: str, assessor: str):
    project_id = _ask_project(db_path)
    batch = start_assessment(db_path, project_id, assessor, AssessmentType.QUICK)
    if batch.resumed:
        console.print("[dim]Resuming your quick assessment...[/dim]")
    console.print(f"\n[bold]Quick Assessment[/bold] - {batch.remaining} questions left\n")
    batch = run_question_batch(db_path, batch, assessor)
    _finish_if_done(db_path, batch, assessor)


def cmd_deep(db_path: str, assessor: str):
    project_id = _ask_project(db_path)
    module = Prompt.ask("Start with module", choices=[m.value for m in Module], default=Module.PM.value)
    batch = start_assessment(db_path, project_id, assessor, AssessmentType.DEEP, module=Module(module))
    if batch.resumed:
        console.print("[dim]Resuming your deep assessment...[/dim]")
    console.print(f"\n[bold]Deep Assessment[/bold] - {batch.axis}\n")
    batch = run_question_batch(db_path, batch, assessor)
    _finish_if_done(db_path, batch, assessor)


def cmd_progress(db_path: str):
    session_id = _ask_session(db_path, AssessmentType.DEEP)
    report = get_progress(db_path, session_id)
    console.print(Panel(
        f"Position: [bold]{report.current_axis}[/bold]\n"
        f"Phases completed: {report.completed_phases}/{report.total_phases} ({report.percentage}%)  |  "
        f"Modules completed: {report.completed_modules}/{report.total_modules}",
        title="Deep Assessment Progress", border_style="blue",
    ))
    table = Table(title="Modules x IRL phases")
    table.add_column("Module", style="cyan")
    for phase in IrlPhase:
        table.add_column(phase.value, justify="center")
    table.add_column("Score", justify="right")
    for module, progress in report.modules.items():
        cells = []
        for phase in IrlPhase:
            p = progress.phases.get(phase)
            if p is None:
                cells.append("")
            elif not p.unlocked:
                cells.append("[dim]locked[/dim]")
            else:
                color = maturity_color(p.exact_score) if p.questions_answered else "white"
                cells.append(f"[{color}]{p.questions_answered}/{p.questions_total}[/{color}]")
        score = f"{progress.score:.2f}" if progress.answered_questions else "-"
        table.add_row(module.label, *cells, score)
    console.print(table)


def cmd_navigate(db_path: str, assessor: str):
    session_id = _ask_session(db_path, AssessmentType.DEEP)
    module = Prompt.ask("Module", choices=[m.value for m in Module])
    phase = Prompt.ask("IRL phase", choices=[p.value for p in IrlPhase])
    family = Prompt.ask("Question family (blank for first available)",
                        choices=[""] + [f.value for f in QuestionFamily], default="")
    batch = navigate(
        db_path, session_id, Module(module), IrlPhase(phase),
        QuestionFamily(family) if family else None, actor=assessor,
    )
    console.print(f"[green]Now at {batch.axis}[/green] ({batch.remaining} open questions)")
    if batch.questions and Prompt.ask("Answer now?", choices=["y", "n"], default="y") == "y":
        batch = run_question_batch(db_path, batch, assessor)
        _finish_if_done(db_path, batch, assessor)


def cmd_results(db_path: str):
    session_id = _ask_session(db_path)
    session = load_session(db_path, session_id)
    result = session.result or compute_scores(session.answers)
    project = get_project(db_path, session.project_id)
    status = "Final" if session.status == AssessmentStatus.COMPLETED else "Provisional"
    color = maturity_color(result.overall.exact_score)
    console.print(Panel(
        f"[bold]{project['name']}[/bold] - {session.type.value} assessment ({status})\n"
        f"Score: [{color}]{result.overall_score:.2f}/3[/{color}]  |  "
        f"Weighted: {result.overall_weighted_score:.2f}/3 ({result.overall_percentage}%)  |  "
        f"Maturity: [{color}]{result.maturity_level}[/{color}]",
        title="Results", border_style="blue",
    ))

    names = QuestionCatalog(db_path).category_names()
    table = Table(title="Categories")
    table.add_column("Category", style="cyan")
    table.add_column("Answered", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    for c in result.category_scores:
        c_color = maturity_color(c.exact_score)
        table.add_row(names.get(c.key, str(c.key)), str(c.questions_answered),
                      f"{c.score:.2f}", f"[{c_color}]{c.maturity_level}[/{c_color}]")
    console.print(table)

    if result.module_scores:
        table = Table(title="Modules")
        table.add_column("Module", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Weighted", justify="right")
        table.add_column("Level")
        for m in result.module_scores:
            m_color = maturity_color(m.exact_score)
            table.add_row(m.key.label, f"{m.score:.2f}", f"{m.weighted_score:.2f}",
                          f"[{m_color}]{m.maturity_level}[/{m_color}]")
        console.print(table)

    feedback = get_feedback(db_path, session_id)
    console.print(f"\n{feedback.summary}")
    for heading, items, style in (
        ("Strengths", feedback.strengths, "green"),
        ("Needs attention", feedback.improvements, "red"),
        ("Next steps", feedback.next_steps, "cyan"),
        ("Modules", feedback.module_recommendations, "cyan"),
        ("Phase tips", feedback.phase_tips, "dim"),
    ):
        if items:
            console.print(f"\n[bold]{heading}:[/bold]")
            for item in items:
                console.print(f"  [{style}]- {item}[/{style}]")


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    db_path = settings.db_path
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()
    assessor = Prompt.ask("Your name").strip() or "assessor"

    commands = {
        "projects": lambda: cmd_projects(db_path),
        "new": lambda: cmd_new(db_path, assessor),
        "quick": lambda: cmd_quick(db_path, assessor),
        "deep": lambda: cmd_deep(db_path, assessor),
        "progress": lambda: cmd_progress(db_path),
        "navigate": lambda: cmd_navigate(db_path, assessor),
        "results": lambda: cmd_results(db_path),
    }
    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="projects").strip().lower()
        try:
            if choice in commands:
                commands[choice]()
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Goodbye![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("\n[dim]Answers saved. Back to menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except AssessmentError as e:
            console.print(f"[red]{e}[/red]")
        except Exception as e:
            logger.exception("Command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
