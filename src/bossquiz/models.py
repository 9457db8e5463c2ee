"""Data classes for the quiz domain model."""
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Union


class Topic(Enum):
    JAVASCRIPT = "JavaScript"
    REACT = "React"
    TYPESCRIPT = "TypeScript"
    MOBILE_DEV = "Mobile Dev"


class Difficulty(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GameMode(Enum):
    BOSS = "boss"
    SPEED = "speed"
    ENDLESS = "endless"
    SUDDEN_DEATH = "suddenDeath"
    FOCUS_TOPIC = "focusTopic"

    @property
    def timed(self) -> bool:
        """Modes that run a per-question countdown."""
        return self in (GameMode.BOSS, GameMode.SPEED, GameMode.SUDDEN_DEATH)


class GamePhase(Enum):
    MENU = "menu"
    PLAYING = "playing"
    COMPLETE = "complete"


class Confidence(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


@dataclass(frozen=True)
class QuestionTemplate:
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation: str = ""

    def __post_init__(self):
        if not self.options:
            raise ValueError(f"Question has no options: {self.prompt!r}")
        if not 0 <= self.correct_option_index < len(self.options):
            raise ValueError(
                f"correct_option_index {self.correct_option_index} out of range "
                f"for {len(self.options)} options: {self.prompt!r}"
            )


@dataclass(frozen=True)
class ActiveQuestion:
    """A shuffled template drawn for a topic at a given rating."""
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation: str
    topic: Topic
    difficulty: Difficulty
    rating: int


@dataclass(frozen=True)
class HistoryEntry:
    question: ActiveQuestion
    chosen_index: int  # -1 = timeout
    correct: bool
    confidence: Confidence
    delta: int = 0

    @property
    def timed_out(self) -> bool:
        return self.chosen_index == -1


@dataclass(frozen=True)
class AwaitingAnswer:
    pass


@dataclass(frozen=True)
class AwaitingConfidence:
    pending_index: int


@dataclass(frozen=True)
class Resolved:
    chosen_index: int
    correct: bool
    delta: int
    feedback: str = ""


Turn = Union[AwaitingAnswer, AwaitingConfidence, Resolved]


@dataclass(frozen=True)
class SessionState:
    mode: GameMode = GameMode.BOSS
    focus_topic: Optional[Topic] = None
    phase: GamePhase = GamePhase.MENU
    score: int = 0
    streak: int = 0
    level: int = 1
    boss_health: int = 100
    boss_phase: int = 1
    progress: int = 0
    time_remaining: int = 0
    mastery: dict = field(default_factory=dict)
    history: tuple = ()
    question: Optional[ActiveQuestion] = None
    turn: Turn = AwaitingAnswer()
    question_started_at: Optional[float] = None


@dataclass(frozen=True)
class QuestionView:
    """What the presentation layer may see of the outstanding question."""
    prompt: str
    options: tuple[str, ...]
    topic: Topic
    difficulty: Difficulty
    rating: int
    correct_option_index: Optional[int] = None
    explanation: Optional[str] = None


@dataclass(frozen=True)
class SessionSnapshot:
    mode: GameMode
    focus_topic: Optional[Topic]
    phase: GamePhase
    score: int
    streak: int
    level: int
    boss_health: int
    boss_phase: int
    progress: int
    time_remaining: int
    mastery: dict
    history: tuple
    question: Optional[QuestionView]
    turn: Turn
