"""Interactive CLI application."""
import logging
import os
import sys
import time

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from bossquiz.bank import DEFAULT_BANK_PATH, BankError, load_bank
from bossquiz.insights import (
    boss_phase_label, calibration_by_topic, calibration_label, coach_line,
    correct_count, mastery_bar_widths,
)
from bossquiz.models import AwaitingAnswer, Confidence, GameMode, GamePhase, Resolved, Topic
from bossquiz.session import ADVANCE_DELAY, QUESTION_TIME, QuizSession

console = Console()

EXIT_WORDS = ("q", "menu")

MODE_COMMANDS = {
    "boss": GameMode.BOSS,
    "speed": GameMode.SPEED,
    "endless": GameMode.ENDLESS,
    "sudden": GameMode.SUDDEN_DEATH,
    "focus": GameMode.FOCUS_TOPIC,
}

MODE_LABELS = {
    GameMode.BOSS: "Boss Battle",
    GameMode.SPEED: "Speed Run",
    GameMode.ENDLESS: "Endless",
    GameMode.SUDDEN_DEATH: "Sudden Death",
    GameMode.FOCUS_TOPIC: "Focus Topic",
}

DIFFICULTY_COLORS = {
    "beginner": "green",
    "intermediate": "yellow",
    "advanced": "red",
}


class SessionExitRequested(Exception):
    """User asked to leave the running session."""


def session_prompt(text: str, choices: list[str] | None = None, **kwargs) -> str:
    if choices is not None:
        choices = list(choices) + list(EXIT_WORDS)
    answer = Prompt.ask(text, choices=choices, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer.strip().lower()


def session_int_prompt(text: str, choices: list[str]) -> int:
    return int(session_prompt(text, choices=choices))


def show_welcome():
    console.print(Panel(
        "[bold]Adaptive Boss Battle[/bold]\n[dim]A quiz engine that targets your weak spots[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Modes:[/bold]")
    commands = [
        ("boss", "Boss Battle: timed, hits get stronger as the boss weakens"),
        ("speed", f"Speed Run: 10 timed questions, {QUESTION_TIME}s each"),
        ("endless", "Endless: keep going until you say 'end'"),
        ("sudden", "Sudden Death: first mistake ends the run"),
        ("focus", "Focus Topic: drill one area deeply"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<10}[/cyan] {desc}")


def show_status(snapshot):
    line = (
        f"Score: [bold]{snapshot.score}[/bold]  |  Streak: [bold]{snapshot.streak}[/bold]  |  "
        f"Level: [bold]{snapshot.level}[/bold]  |  Progress: [bold]{snapshot.progress}%[/bold]"
    )
    if snapshot.mode is GameMode.BOSS:
        filled = snapshot.boss_health // 5
        bar = f"[red]{'█' * filled}{'░' * (20 - filled)}[/red]"
        line += f"\nBoss · {boss_phase_label(snapshot.boss_phase)}  {bar} {snapshot.boss_health}%"
    if snapshot.mode.timed:
        line += f"\n[dim]Time limit: {QUESTION_TIME}s per question[/dim]"
    console.print(Panel(line, title=MODE_LABELS[snapshot.mode], border_style="magenta"))
    console.print(f"[italic dim]Coach: {coach_line(snapshot, QUESTION_TIME)}[/italic dim]")


def show_question(snapshot):
    q = snapshot.question
    color = DIFFICULTY_COLORS[q.difficulty.value]
    console.print(
        f"\n[{color}]{q.difficulty.value.upper()}[/{color}]  [blue]{q.topic.value}[/blue]"
        f"  [dim](rating {q.rating})[/dim]"
    )
    console.print(f"[bold]Q{len(snapshot.history) + 1}.[/bold] {q.prompt}\n")
    for i, option in enumerate(q.options):
        console.print(f"  [cyan]{chr(97 + i)})[/cyan] {option}")


def show_feedback(snapshot):
    turn = snapshot.turn
    if not isinstance(turn, Resolved):
        return
    q = snapshot.question
    if turn.correct:
        console.print(Panel(turn.feedback, border_style="green"))
    else:
        answer = q.options[q.correct_option_index]
        console.print(Panel(f"{turn.feedback}\nAnswer: [green]{answer}[/green]", border_style="blue"))


def show_results(snapshot):
    total = len(snapshot.history)
    console.print(Panel(
        f"[bold]Score: {snapshot.score}[/bold]  |  Correct: {correct_count(snapshot.history)}/{total or 1}"
        f"  |  Level: {snapshot.level}",
        title="Session Complete", border_style="blue",
    ))

    table = Table(title="Topic Mastery (session end)")
    table.add_column("Topic", style="cyan")
    table.add_column("Rating", justify="right")
    table.add_column("")
    widths = mastery_bar_widths(snapshot.mastery)
    for topic in Topic:
        filled = int(widths[topic] / 5)
        table.add_row(topic.value, str(snapshot.mastery[topic]), "█" * filled + "░" * (20 - filled))
    console.print(table)

    if snapshot.history:
        calib = Table(title="Confidence vs Accuracy")
        calib.add_column("Topic", style="cyan")
        calib.add_column("Correct", justify="right")
        calib.add_column("Confidence", justify="right")
        calib.add_column("Verdict")
        for row in calibration_by_topic(snapshot.history):
            if not row["attempts"]:
                continue
            calib.add_row(
                row["topic"].value,
                f"{round(row['accuracy'] * 100)}%",
                f"~{row['avg_confidence']:.1f}/3",
                calibration_label(row["avg_confidence"], row["accuracy"]),
            )
        console.print(calib)

        console.print("\n[bold]Session Path[/bold]")
        for i, entry in enumerate(snapshot.history, 1):
            mark = "[green]✓[/green]" if entry.correct else "[red]✗[/red]"
            console.print(
                f"  {i:>2}. {mark} {entry.question.topic.value} · {entry.question.difficulty.value}"
                f" · conf {int(entry.confidence)} · {entry.delta:+d}"
            )


def choose_focus_topic() -> Topic:
    topics = list(Topic)
    for i, topic in enumerate(topics, 1):
        console.print(f"  [cyan]{i}[/cyan]) {topic.value}")
    choice = session_int_prompt("Select topic", choices=[str(i) for i in range(1, len(topics) + 1)])
    return topics[choice - 1]


class SessionScreen:
    """Session listener that repaints the terminal when the turn changes.

    Countdown ticks and staged answers do not repaint. Keeps the latest
    snapshot so the prompt loop can read it.
    """

    def __init__(self):
        self.latest = None
        self._painted = None

    def __call__(self, snapshot):
        self.latest = snapshot
        if snapshot.phase is not GamePhase.PLAYING or snapshot.question is None:
            return
        turn = snapshot.turn
        if isinstance(turn, AwaitingAnswer):
            key = (len(snapshot.history), "question")
        elif isinstance(turn, Resolved):
            key = (len(snapshot.history), "feedback")
        else:
            return
        if key == self._painted:
            return
        self._painted = key
        if isinstance(turn, Resolved):
            if snapshot.history[-1].timed_out:
                console.print("[red]Too slow! The timer ran out before you answered.[/red]")
            show_feedback(snapshot)
        else:
            show_status(snapshot)
            show_question(snapshot)


def run_session(session: QuizSession, mode: GameMode, focus_topic: Topic | None = None, clock=time.monotonic):
    """Play one session to completion. Returns the final snapshot."""
    screen = SessionScreen()
    unsubscribe = session.subscribe(screen)
    try:
        session.start_session(mode, focus_topic)
        while screen.latest.phase is GamePhase.PLAYING:
            letters = [chr(97 + i) for i in range(len(screen.latest.question.options))]
            shown_at = clock()

            choices = letters + (["end"] if mode is GameMode.ENDLESS else [])
            answer = session_prompt("\nYour answer", choices=choices)
            if answer == "end":
                session.end_endless_session()
                continue
            index = letters.index(answer)
            session.select_pending_answer(index)
            confidence = session_int_prompt(
                "How confident are you? (1=Low, 2=Medium, 3=High)", choices=["1", "2", "3"],
            )

            # Replay the time spent thinking; past the limit the countdown fires first
            elapsed = min(max(0.0, clock() - shown_at), QUESTION_TIME)
            session.scheduler.advance(elapsed)
            session.submit_answer(index, Confidence(confidence))
            session.scheduler.advance(ADVANCE_DELAY)
    finally:
        unsubscribe()

    final = session.snapshot()
    show_results(final)
    return final


def cmd_play(bank: dict, mode: GameMode):
    focus_topic = None
    if mode is GameMode.FOCUS_TOPIC:
        console.print("\n[bold]Choose a topic to drill:[/bold]")
        focus_topic = choose_focus_topic()
    session = QuizSession(bank=bank)
    run_session(session, mode, focus_topic)
    session.return_to_menu()


def main():
    logging.basicConfig(level=os.environ.get("BOSSQUIZ_LOG_LEVEL", "WARNING").upper())
    bank_path = os.environ.get("BOSSQUIZ_BANK", str(DEFAULT_BANK_PATH))
    try:
        bank = load_bank(bank_path)
    except (BankError, OSError) as e:
        console.print(f"[red]Cannot load question bank {bank_path}: {e}[/red]")
        sys.exit(1)

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="boss").strip().lower()
        try:
            if choice in MODE_COMMANDS:
                cmd_play(bank, MODE_COMMANDS[choice])
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you next battle![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("[dim]Back to the menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
