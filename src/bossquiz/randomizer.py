"""Random picking and fair answer shuffling."""
import random
from dataclasses import replace
from typing import Optional, Sequence, TypeVar

from bossquiz.models import QuestionTemplate

T = TypeVar("T")


def pick_random(seq: Sequence[T], rng: Optional[random.Random] = None) -> T:
    """Uniformly random element. Raises IndexError on an empty sequence."""
    if not seq:
        raise IndexError("Cannot pick from an empty sequence")
    rng = rng or random
    return seq[rng.randrange(len(seq))]


def shuffle_options(template: QuestionTemplate, rng: Optional[random.Random] = None) -> QuestionTemplate:
    """Return a copy with options in a Fisher-Yates permutation.

    The correct index follows the originally-correct option.
    """
    rng = rng or random
    flagged = [(option, i == template.correct_option_index) for i, option in enumerate(template.options)]
    for i in range(len(flagged) - 1, 0, -1):
        j = rng.randrange(i + 1)
        flagged[i], flagged[j] = flagged[j], flagged[i]
    options = tuple(option for option, _ in flagged)
    correct = next(i for i, (_, is_correct) in enumerate(flagged) if is_correct)
    return replace(template, options=options, correct_option_index=correct)
