"""
Lesson generation with OpenAI API integration
"""

import logging
import random
from typing import Any, Protocol

from openai import AsyncOpenAI

from .config import get_settings
from .lesson_transformer import SIMILAR_WORD_PREFIXES, SIMILAR_WORD_SUFFIXES
from .utils import extract_json_safely, log_execution_time, retry_on_exception, truncate_text

logger = logging.getLogger(__name__)

LEARNING_GOALS = {
    "vocabulary": "expand everyday vocabulary",
    "emotions": "describe feelings and emotions precisely",
    "professional": "sound more professional at work",
    "creative": "write more creatively",
    "confidence": "speak with more confidence",
    "daily": "build a daily learning habit",
}


class LessonGenerator(Protocol):
    """Anything that can produce a raw lesson payload"""

    async def generate_lesson(
        self,
        user_level: str,
        previous_words: list[str],
        learning_goals: list[str] | None = None,
        user_name: str | None = None,
    ) -> dict[str, Any] | None: ...


def generate_similar_word(target_word: str, rng: random.Random | None = None) -> str:
    """
    Build a look-alike distractor for the discovery step

    Either swaps the first two letters for a common prefix or the last two for
    a common suffix.
    """
    rng = rng or random
    if rng.random() > 0.5 and len(target_word) > 4:
        return rng.choice(SIMILAR_WORD_PREFIXES) + target_word[2:]
    return target_word[:-2] + rng.choice(SIMILAR_WORD_SUFFIXES)


def build_steps(lesson: dict[str, Any], rng: random.Random | None = None) -> dict[int, dict[str, Any]]:
    """
    Build the four exercise steps from parsed lesson fields

    Args:
        lesson: Parsed reply with word, story, definition, wrongAnswers,
            spellingHint and usageOptions
        rng: Random source for distractors and shuffling

    Returns:
        Steps keyed 1..4
    """
    rng = rng or random.Random()
    word = lesson["word"]
    wrong_answers = list(lesson.get("wrongAnswers") or [])
    usage_options = list(lesson.get("usageOptions") or [])

    discovery = [word] + [generate_similar_word(word, rng) for _ in range(3)]
    rng.shuffle(discovery)

    meaning = [lesson["definition"], *wrong_answers[:3]]
    rng.shuffle(meaning)

    letters = list(word.upper())
    rng.shuffle(letters)

    steps: dict[int, dict[str, Any]] = {
        1: {
            "type": "discovery",
            "story": lesson["story"],
            "options": discovery,
            "correctAnswer": word,
        },
        2: {
            "type": "meaning",
            "question": f'What does "{word}" mean?',
            "options": meaning,
            "correctAnswer": lesson["definition"],
        },
        3: {
            "type": "spelling",
            "hint": lesson.get("spellingHint") or "Think about the sounds",
            "letters": letters,
            "correctWord": word.upper(),
        },
        4: {
            "type": "usage",
            "question": f'Which sentence uses "{word}" correctly?',
            # The first usage option is the correct one
            "options": usage_options[:4],
            "correctAnswer": usage_options[0] if usage_options else None,
        },
    }
    return steps


def parse_lesson(content: str, rng: random.Random | None = None) -> dict[str, Any] | None:
    """
    Parse a model reply into a raw lesson payload

    Returns None when no JSON object is found or word, story or definition
    is missing.
    """
    parsed = extract_json_safely(content)
    if not parsed:
        return None

    if not all(isinstance(parsed.get(key), str) and parsed[key].strip() for key in ("word", "story", "definition")):
        logger.error(f"Lesson reply is missing required fields: {truncate_text(content)}")
        return None

    parsed["word"] = parsed["word"].strip().lower()

    return {
        "targetWord": parsed["word"],
        "emoji": parsed.get("emoji") or "📚",
        "story": parsed["story"],
        "definition": parsed["definition"],
        "wrongAnswers": parsed.get("wrongAnswers") or [],
        "spellingHint": parsed.get("spellingHint") or "Think about the sounds",
        "usageOptions": parsed.get("usageOptions") or [],
        "steps": build_steps(parsed, rng),
    }


class OpenAILessonGenerator:
    """Generates personalized vocabulary lessons using OpenAI"""

    def __init__(self, api_key: str | None = None, rng: random.Random | None = None):
        settings = get_settings()
        self.client = AsyncOpenAI(
            api_key=api_key or settings.openai_api_key, timeout=settings.api_timeout
        )
        self.model = settings.openai_model
        self.max_tokens = settings.openai_max_tokens
        self.temperature = settings.openai_temperature
        self.rng = rng or random.Random()

    async def generate_lesson(
        self,
        user_level: str,
        previous_words: list[str],
        learning_goals: list[str] | None = None,
        user_name: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Generate a raw lesson payload

        Args:
            user_level: Beginner, Intermediate or Advanced
            previous_words: Recently learned words the new word must not repeat
            learning_goals: Goal ids chosen by the user
            user_name: Name used to personalize the story

        Returns:
            Raw lesson payload, or None if the request or parsing failed
        """
        logger.info(f"Generating {user_level} lesson excluding {len(previous_words)} words")
        prompt = self._create_lesson_prompt(user_level, previous_words, learning_goals, user_name)

        try:
            content = await self._request_completion(prompt)
        except Exception as e:
            logger.error(f"Error generating lesson: {e}")
            return None

        if not content:
            logger.error("Empty response content from OpenAI")
            return None

        lesson = parse_lesson(content, self.rng)
        if lesson and lesson["targetWord"] in {word.lower() for word in previous_words}:
            logger.warning(f"Model repeated a previously learned word: {lesson['targetWord']}")
            return None
        return lesson

    @retry_on_exception(max_retries=2, delay=1.0, backoff=2.0)
    @log_execution_time
    async def _request_completion(self, prompt: str) -> str | None:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self._get_system_prompt()},
                {"role": "user", "content": prompt},
            ],
            max_completion_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )

        if not response.choices:
            logger.error("No response choices from OpenAI")
            return None

        return response.choices[0].message.content

    def _get_system_prompt(self) -> str:
        """Get system prompt for OpenAI"""
        return """You are a vocabulary learning app that writes short, engaging English word lessons.

Always respond in valid JSON with exactly these keys:
- "word": the target word in lowercase
- "emoji": a single relevant emoji
- "story": a 2-3 sentence story that naturally uses the word WITHOUT explicitly defining it
- "definition": a clear, simple definition (max 6 words)
- "wrongAnswers": three plausible but wrong definitions
- "spellingHint": a helpful spelling hint (max 8 words)
- "usageOptions": four sentences, the FIRST uses the word correctly, the other three misuse it"""

    def _create_lesson_prompt(
        self,
        user_level: str,
        previous_words: list[str],
        learning_goals: list[str] | None = None,
        user_name: str | None = None,
    ) -> str:
        """Create prompt for lesson generation"""
        prompt = f"Generate a complete word lesson for a {user_level} level English learner."

        if user_level == "Beginner":
            prompt += "\n- Use common, everyday words (5-8 letters)"
        else:
            prompt += "\n- Use more sophisticated vocabulary (6-12 letters)"

        prompt += "\n- The story should help the learner deduce the meaning"
        prompt += "\n- Wrong answers should be believable but clearly different"
        prompt += "\n- Usage examples should be realistic scenarios"

        goals = [LEARNING_GOALS[goal] for goal in learning_goals or [] if goal in LEARNING_GOALS]
        if goals:
            prompt += f"\n\nThe learner wants to: {', '.join(goals)}."

        if user_name and user_name != "User":
            prompt += f"\nYou may use the name {user_name} in the story."

        if previous_words:
            prompt += f"\n\nDo not use these previously learned words: {', '.join(previous_words)}"

        return prompt

    async def test_connection(self) -> bool:
        """Test OpenAI API connection"""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "Respond with just 'API connection successful'"}],
                max_completion_tokens=10,
            )

            if response.choices and response.choices[0].message.content:
                logger.info("OpenAI connection test successful")
                return True
            logger.error("OpenAI connection test failed - no response")
            return False

        except Exception as e:
            logger.error(f"OpenAI connection test failed: {e}")
            return False


class MockLessonGenerator:
    """Mock lesson generator for testing and offline use"""

    LESSONS = [
        {
            "word": "serendipity",
            "emoji": "✨",
            "story": (
                "Maya was looking for a coffee shop when she stumbled upon a tiny bookstore. "
                "Inside, she found the exact rare novel she had been searching for months."
            ),
            "definition": "A pleasant surprise or discovery",
            "wrongAnswers": [
                "A feeling of deep sadness",
                "A planned achievement",
                "A difficult challenge",
            ],
            "spellingHint": 'Starts with "ser" and ends with "ity"',
            "usageOptions": [
                "Finding my best friend at a random coffee shop was pure serendipity",
                "I serendipity my homework every night",
                "The serendipity weather ruined our picnic",
                "She serendipity walked to the store yesterday",
            ],
        },
        {
            "word": "resilient",
            "emoji": "🌱",
            "story": (
                "After the storm flattened his garden, Leo replanted every row the next "
                "morning. By summer the tomatoes were taller than ever."
            ),
            "definition": "Able to recover quickly",
            "wrongAnswers": [
                "Easily broken",
                "Afraid of change",
                "Always tired",
            ],
            "spellingHint": "Ends with 'ient', like patient",
            "usageOptions": [
                "The resilient team bounced back after losing the first match",
                "She resilient the door before leaving",
                "The soup tasted resilient and salty",
                "He resiliently forgot his keys",
            ],
        },
    ]

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()
        self.requests: list[dict[str, Any]] = []

    async def generate_lesson(
        self,
        user_level: str,
        previous_words: list[str],
        learning_goals: list[str] | None = None,
        user_name: str | None = None,
    ) -> dict[str, Any] | None:
        """Return the first canned lesson whose word was not learned yet"""
        self.requests.append(
            {
                "user_level": user_level,
                "previous_words": list(previous_words),
                "learning_goals": list(learning_goals or []),
                "user_name": user_name,
            }
        )
        excluded = {word.lower() for word in previous_words}
        for lesson in self.LESSONS:
            if lesson["word"] not in excluded:
                parsed = dict(lesson)
                return {
                    "targetWord": parsed["word"],
                    "emoji": parsed["emoji"],
                    "story": parsed["story"],
                    "definition": parsed["definition"],
                    "wrongAnswers": parsed["wrongAnswers"],
                    "spellingHint": parsed["spellingHint"],
                    "usageOptions": parsed["usageOptions"],
                    "steps": build_steps(parsed, self.rng),
                }
        return None

    async def test_connection(self) -> bool:
        """Mock connection test"""
        return True


# Global generator instance
_lesson_generator = None


def get_lesson_generator(use_mock: bool = False) -> LessonGenerator:
    """Get global lesson generator instance"""
    global _lesson_generator
    if _lesson_generator is None:
        _lesson_generator = MockLessonGenerator() if use_mock else OpenAILessonGenerator()
    return _lesson_generator
