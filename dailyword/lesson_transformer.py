"""
Normalization of raw lesson payloads into four-step exercise sets

Generated lessons arrive in whatever shape the model produced. The transformer
turns any payload into a playable ExerciseSet: each step falls back on its own,
first to payload-level fields and then to synthesized placeholders, and a
payload without a target word is replaced by the built-in lesson.
"""

import logging
import random
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from .utils import normalize_word

logger = logging.getLogger(__name__)

OPTION_IDS = ("A", "B", "C", "D")
GROUP_SIZE = len(OPTION_IDS)

STEP_DISCOVERY = 1
STEP_MEANING = 2
STEP_SPELLING = 3
STEP_USAGE = 4

DEFAULT_EMOJI = "📚"
DEFAULT_SPELLING_HINT = "Think about the sounds"

SIMILAR_WORD_PREFIXES = ("pre", "un", "dis", "mis", "over")
SIMILAR_WORD_SUFFIXES = ("ing", "ed", "ly", "tion", "ness")
_PLACEHOLDER_MEANINGS = (
    "A feeling of deep sadness",
    "A planned achievement",
    "A difficult challenge",
    "A kind of weather",
)


@dataclass(frozen=True)
class ExerciseOption:
    id: str
    text: str
    correct: bool


@dataclass
class ExerciseSet:
    """A complete four-step lesson"""

    target_word: str
    emoji: str
    story: str
    definition: str
    story_options: list[ExerciseOption]
    meaning_options: list[ExerciseOption]
    spelling_letters: list[str]
    usage_options: list[ExerciseOption]
    spelling_hint: str = DEFAULT_SPELLING_HINT
    is_fallback: bool = False
    steps_synthesized: list[int] = field(default_factory=list)

    def options_for(self, step: int) -> list[ExerciseOption]:
        """Option group of a multiple-choice step"""
        groups = {
            STEP_DISCOVERY: self.story_options,
            STEP_MEANING: self.meaning_options,
            STEP_USAGE: self.usage_options,
        }
        if step not in groups:
            raise ValueError(f"Step {step} has no options")
        return groups[step]

    @property
    def word(self) -> str:
        """Target word in storage form"""
        return self.target_word.lower()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


FALLBACK_LESSONS = (
    {
        "word": "journey",
        "emoji": "🧭",
        "story": (
            "Sam packed a small bag, said goodbye to his family and boarded the night "
            "train. Three countries and two weeks later, he finally reached the sea."
        ),
        "definition": "A long trip from one place to another",
        "story_options": ["journal", "journey", "jockey", "joinery"],
        "wrong_meanings": ["A feeling of deep sadness", "A planned celebration", "A difficult exam"],
        "letters": ["N", "O", "J", "Y", "E", "U", "R"],
        "usage": "Their journey across the mountains took three weeks",
        "wrong_usages": [
            "I journey my coffee every morning",
            "The journey weather ruined our picnic",
            "She journeyed the cake into slices",
        ],
        "hint": 'Starts with "jour" like journal',
    },
    {
        "word": "harvest",
        "emoji": "🌾",
        "story": (
            "All summer the farmers watched the wheat turn gold. In September the "
            "whole village came out to cut it and carry it into the barns."
        ),
        "definition": "The gathering of crops when they are ripe",
        "story_options": ["harness", "harvest", "hardest", "harbour"],
        "wrong_meanings": ["A sudden storm at sea", "A kind of tool for digging", "A long winter holiday"],
        "letters": ["T", "A", "V", "H", "S", "R", "E"],
        "usage": "The apple harvest was better than last year",
        "wrong_usages": [
            "He harvested loudly during the film",
            "The harvest song was too fast to sing",
            "She harvest her keys in the drawer",
        ],
        "hint": 'Ends with "vest" like the clothing',
    },
    {
        "word": "lantern",
        "emoji": "🏮",
        "story": (
            "When the power went out, Grandma found an old glass case with a candle "
            "inside. Its warm glow lit the whole kitchen until morning."
        ),
        "definition": "A lamp with a protective case, often carried by hand",
        "story_options": ["lattice", "lantern", "lectern", "landing"],
        "wrong_meanings": ["A narrow mountain road", "A large sailing ship", "A loud musical instrument"],
        "letters": ["R", "N", "A", "E", "L", "N", "T"],
        "usage": "They carried a lantern through the dark forest",
        "wrong_usages": [
            "I lanterned the letter to my friend",
            "The soup was too lantern to eat",
            "She lantern quickly to catch the bus",
        ],
        "hint": 'Starts with "lan" and has two n\'s',
    },
)


def _fallback_group(texts: list[str], correct: str) -> list[ExerciseOption]:
    return [
        ExerciseOption(id=option_id, text=text, correct=text == correct)
        for option_id, text in zip(OPTION_IDS, texts)
    ]


def build_fallback_lesson(avoid_words: Iterable[str] = ()) -> ExerciseSet:
    """
    A built-in lesson used when nothing usable was generated

    Picks the first lesson whose word is not in avoid_words, or the first
    lesson once every word has been seen.
    """
    avoid = {normalize_word(word) for word in avoid_words}
    lesson = next(
        (entry for entry in FALLBACK_LESSONS if entry["word"] not in avoid),
        FALLBACK_LESSONS[0],
    )

    meanings = [*lesson["wrong_meanings"]]
    meanings.insert(1, lesson["definition"])
    usages = [*lesson["wrong_usages"]]
    usages.insert(1, lesson["usage"])

    return ExerciseSet(
        target_word=lesson["word"].upper(),
        emoji=lesson["emoji"],
        story=lesson["story"],
        definition=lesson["definition"],
        story_options=_fallback_group(lesson["story_options"], lesson["word"]),
        meaning_options=_fallback_group(meanings, lesson["definition"]),
        spelling_letters=list(lesson["letters"]),
        usage_options=_fallback_group(usages, lesson["usage"]),
        spelling_hint=lesson["hint"],
        is_fallback=True,
    )


def similar_words(word: str) -> list[str]:
    """Look-alike variants of a word: common prefixes for longer words, then suffixes"""
    variants = []
    if len(word) > 4:
        variants.extend(prefix + word[2:] for prefix in SIMILAR_WORD_PREFIXES)
    variants.extend(word[:-2] + suffix for suffix in SIMILAR_WORD_SUFFIXES)
    return variants


def _clean_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _clean_texts(values: Any) -> list[str]:
    """Strings from a list, blanks dropped and duplicates removed in order"""
    if not isinstance(values, (list, tuple)):
        return []
    seen: list[str] = []
    for value in values:
        text = _clean_text(value)
        if text is not None and text not in seen:
            seen.append(text)
    return seen


def _get_step(steps: Any, number: int) -> Mapping[str, Any] | None:
    """Look a step up by int or str key, or by position in a list"""
    if isinstance(steps, Mapping):
        step = steps.get(number, steps.get(str(number)))
    elif isinstance(steps, (list, tuple)) and len(steps) >= number:
        step = steps[number - 1]
    else:
        step = None
    return step if isinstance(step, Mapping) else None


def _tag(texts: list[str], correct: str) -> list[ExerciseOption]:
    return [
        ExerciseOption(id=option_id, text=text, correct=text == correct)
        for option_id, text in zip(OPTION_IDS, texts)
    ]


def _is_valid_group(options: list[ExerciseOption]) -> bool:
    return sum(1 for option in options if option.correct) == 1


def is_letter_permutation(letters: Any, word: str) -> bool:
    """Check that letters are exactly the letters of word"""
    if not isinstance(letters, (list, tuple)) or not all(isinstance(x, str) for x in letters):
        return False
    return Counter(letter.upper() for letter in letters) == Counter(word.upper())


class LessonTransformer:
    """Turns raw lesson payloads into ExerciseSets"""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def transform(self, payload: Any, avoid_words: Iterable[str] = ()) -> ExerciseSet:
        """
        Normalize a payload into an ExerciseSet

        Args:
            payload: Raw lesson mapping, may be partial, malformed or None
            avoid_words: Words the built-in lesson should not repeat

        Returns:
            An ExerciseSet where every option group has exactly one correct
            option; the built-in lesson if the payload has no target word
        """
        if not isinstance(payload, Mapping):
            logger.warning("Lesson payload is not a mapping, using fallback lesson")
            return build_fallback_lesson(avoid_words)

        word = _clean_text(payload.get("targetWord"))
        if word is None:
            logger.warning("Lesson payload has no target word, using fallback lesson")
            return build_fallback_lesson(avoid_words)

        word = word.lower()
        steps = payload.get("steps")
        synthesized: list[int] = []

        definition = (
            _clean_text(payload.get("definition"))
            or _clean_text((_get_step(steps, STEP_MEANING) or {}).get("correctAnswer"))
            or f'The meaning of "{word}"'
        )
        story = (
            _clean_text((_get_step(steps, STEP_DISCOVERY) or {}).get("story"))
            or _clean_text(payload.get("story"))
            or f"Today's word has {len(word)} letters. Can you guess it?"
        )

        story_options = self._discovery_group(word, _get_step(steps, STEP_DISCOVERY), synthesized)
        meaning_options = self._meaning_group(
            word, definition, payload, _get_step(steps, STEP_MEANING), synthesized
        )
        spelling_letters = self._spelling_letters(word, _get_step(steps, STEP_SPELLING), synthesized)
        usage_options = self._usage_group(word, payload, _get_step(steps, STEP_USAGE), synthesized)

        spelling_hint = (
            _clean_text((_get_step(steps, STEP_SPELLING) or {}).get("hint"))
            or _clean_text(payload.get("spellingHint"))
            or DEFAULT_SPELLING_HINT
        )

        if synthesized:
            logger.info(f"Synthesized steps {synthesized} for lesson '{word}'")

        return ExerciseSet(
            target_word=word.upper(),
            emoji=_clean_text(payload.get("emoji")) or DEFAULT_EMOJI,
            story=story,
            definition=definition,
            story_options=story_options,
            meaning_options=meaning_options,
            spelling_letters=spelling_letters,
            usage_options=usage_options,
            spelling_hint=spelling_hint,
            steps_synthesized=synthesized,
        )

    def _accept_step_group(
        self, step: Mapping[str, Any] | None, default_correct: str | None
    ) -> list[ExerciseOption] | None:
        """Options given explicitly by a step, or None if unusable"""
        if step is None:
            return None
        texts = _clean_texts(step.get("options"))[:GROUP_SIZE]
        correct = _clean_text(step.get("correctAnswer")) or default_correct
        if not texts or correct is None:
            return None

        group = _tag(texts, correct)
        if not _is_valid_group(group):
            logger.warning(f"Rejected option group without exactly one match for '{correct}'")
            return None
        if len(group) < GROUP_SIZE:
            return None
        return group

    def _fill_group(self, correct: str, candidates: list[str], placeholders: list[str]) -> list[ExerciseOption]:
        """Build a shuffled group of four with correct in it exactly once"""
        distractors: list[str] = []
        for text in candidates + placeholders:
            if text != correct and text not in distractors:
                distractors.append(text)
            if len(distractors) == GROUP_SIZE - 1:
                break

        texts = [correct, *distractors]
        self.rng.shuffle(texts)
        return _tag(texts, correct)

    def _similar_words(self, word: str) -> list[str]:
        variants = similar_words(word)
        self.rng.shuffle(variants)
        return variants

    def _discovery_group(
        self, word: str, step: Mapping[str, Any] | None, synthesized: list[int]
    ) -> list[ExerciseOption]:
        group = self._accept_step_group(step, word)
        if group is not None:
            return group

        synthesized.append(STEP_DISCOVERY)
        return self._fill_group(word, [], self._similar_words(word))

    def _meaning_group(
        self,
        word: str,
        definition: str,
        payload: Mapping[str, Any],
        step: Mapping[str, Any] | None,
        synthesized: list[int],
    ) -> list[ExerciseOption]:
        group = self._accept_step_group(step, definition)
        if group is not None:
            return group

        synthesized.append(STEP_MEANING)
        wrong_answers = _clean_texts(payload.get("wrongAnswers"))
        return self._fill_group(definition, wrong_answers, list(_PLACEHOLDER_MEANINGS))

    def _usage_group(
        self,
        word: str,
        payload: Mapping[str, Any],
        step: Mapping[str, Any] | None,
        synthesized: list[int],
    ) -> list[ExerciseOption]:
        group = self._accept_step_group(step, None)
        if group is not None:
            return group

        synthesized.append(STEP_USAGE)
        usage = _clean_texts(payload.get("usageOptions"))
        # First usage option is the correct one
        correct = usage[0] if usage else f'I learned the word "{word}" and used it in a sentence today'
        placeholders = [
            f"I {word} the door every morning",
            f"The {word} weather ruined our picnic",
            f"She {word} walked to the store yesterday",
            f"They {word} over the fence to get home",
        ]
        return self._fill_group(correct, usage[1:], placeholders)

    def _spelling_letters(
        self, word: str, step: Mapping[str, Any] | None, synthesized: list[int]
    ) -> list[str]:
        letters = (step or {}).get("letters")
        if is_letter_permutation(letters, word):
            return [letter.upper() for letter in letters]

        if step is not None and letters is not None:
            logger.warning(f"Spelling letters do not match '{word}', reshuffling")
        synthesized.append(STEP_SPELLING)
        letters = list(word.upper())
        self.rng.shuffle(letters)
        return letters
