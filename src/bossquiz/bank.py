"""Question bank loading and integrity checks."""
import json
import logging
from functools import lru_cache
from pathlib import Path

from bossquiz.models import Difficulty, QuestionTemplate

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"
DEFAULT_BANK_PATH = CONTENT_DIR / "questions.json"
OPTIONS_PER_QUESTION = 4


class BankError(ValueError):
    """The question catalog is missing data or contains a malformed record."""


def read_bank_file(file_path) -> dict:
    """Read raw bank data from a JSON or YAML file."""
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise BankError(f"Invalid JSON in {path.name}: {e}") from e
    elif suffix in (".yaml", ".yml"):
        import yaml
        try:
            return yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise BankError(f"Invalid YAML in {path.name}: {e}") from e
    raise BankError(f"Unsupported question bank format: {path.name}")


def _build_template(difficulty: str, index: int, record: dict) -> QuestionTemplate:
    options = record.get("options") if isinstance(record, dict) else None
    if not isinstance(options, (list, tuple)) or not all(isinstance(o, str) for o in options):
        raise BankError(f"Bad {difficulty} question #{index}: options must be a list of strings")
    if len(options) != OPTIONS_PER_QUESTION:
        raise BankError(
            f"Bad {difficulty} question #{index}: expected {OPTIONS_PER_QUESTION} options, got {len(options)}"
        )
    try:
        return QuestionTemplate(
            prompt=record["prompt"],
            options=tuple(options),
            correct_option_index=int(record["correct_option_index"]),
            explanation=record.get("explanation", ""),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise BankError(f"Bad {difficulty} question #{index}: {e}") from e


def parse_bank(data: dict) -> dict[Difficulty, tuple[QuestionTemplate, ...]]:
    if not isinstance(data, dict):
        raise BankError("Question bank must be a mapping of difficulty to questions")
    bank = {}
    for difficulty in Difficulty:
        records = data.get(difficulty.value) or []
        bank[difficulty] = tuple(
            _build_template(difficulty.value, i, record) for i, record in enumerate(records)
        )
    validate_bank(bank)
    return bank


def validate_bank(bank: dict) -> None:
    """Fail loudly if any difficulty tier has no questions."""
    for difficulty in Difficulty:
        if not bank.get(difficulty):
            raise BankError(f"No {difficulty.value} questions in the bank")


def load_bank(file_path=DEFAULT_BANK_PATH) -> dict[Difficulty, tuple[QuestionTemplate, ...]]:
    bank = parse_bank(read_bank_file(file_path))
    logger.debug(
        "Loaded question bank %s (%s)",
        file_path,
        ", ".join(f"{d.value}={len(qs)}" for d, qs in bank.items()),
    )
    return bank


@lru_cache(maxsize=1)
def default_bank() -> dict[Difficulty, tuple[QuestionTemplate, ...]]:
    """The bundled catalog, loaded once per process."""
    return load_bank(DEFAULT_BANK_PATH)
