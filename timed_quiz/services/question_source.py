"""
Question Sources
Supply the pool of candidate questions from a spreadsheet or a generative API
"""
import logging
from typing import List, Optional, Protocol

from pydantic import ValidationError

from timed_quiz.core.exceptions import UpstreamUnavailable
from timed_quiz.db.sheets import SheetsClient, SheetsError
from timed_quiz.models.question import Question
from timed_quiz.services.llm_client import LLMClientError, generate_quiz
from timed_quiz.utils.quiz_parser import QuizParseError, parse_correct_option, parse_quiz_json
from timed_quiz.utils.quiz_prompt import build_quiz_prompt

logger = logging.getLogger(__name__)


class QuestionSource(Protocol):
    async def load_pool(self) -> List[Question]:
        ...


class SheetQuestionSource:
    """
    Question bank kept in a spreadsheet tab

    Columns: id, question, option A, option B, option C, option D, correct letter.
    The first row may be a header; rows that do not parse are skipped.
    """

    def __init__(self, client: SheetsClient, range_: str):
        self.client = client
        self.range_ = range_

    @staticmethod
    def row_to_question(row: list, row_number: int) -> Optional[Question]:
        if len(row) < 7:
            return None

        raw_id = str(row[0]).strip()
        question_id = int(raw_id) if raw_id.isdigit() else row_number

        try:
            return Question(
                id=question_id,
                text=str(row[1]).strip(),
                options=[str(cell).strip() for cell in row[2:6]],
                correctOptionIndex=parse_correct_option(row[6])
            )
        except (QuizParseError, ValidationError):
            return None

    async def load_pool(self) -> List[Question]:
        try:
            rows = await self.client.get_values(self.range_)
        except SheetsError as e:
            raise UpstreamUnavailable(f"Question bank unavailable: {e}")

        pool: List[Question] = []
        seen_ids = set()

        for row_number, row in enumerate(rows, start=1):
            question = self.row_to_question(row, row_number)
            if question is None:
                if row_number > 1:
                    logger.warning(f"⚠️ Skipping malformed question row {row_number}")
                continue
            if question.id in seen_ids:
                logger.warning(f"⚠️ Skipping duplicate question id {question.id}")
                continue
            seen_ids.add(question.id)
            pool.append(question)

        logger.info(f"📚 Loaded {len(pool)} questions from {self.range_}")
        return pool


class GeneratedQuestionSource:
    """Pool produced on demand by a generative text API"""

    def __init__(
        self,
        topic: str,
        pool_size: int = 10,
        provider: str = "gemini",
        timeout: Optional[float] = None
    ):
        self.topic = topic
        self.pool_size = pool_size
        self.provider = provider
        self.timeout = timeout

    async def load_pool(self) -> List[Question]:
        prompt = build_quiz_prompt(self.topic, self.pool_size)

        try:
            raw = await generate_quiz(prompt, provider=self.provider, timeout=self.timeout)
            parsed = parse_quiz_json(raw)
        except LLMClientError as e:
            logger.error(f"❌ Quiz generation failed: {e}")
            raise UpstreamUnavailable(f"Quiz generation failed: {e}")
        except QuizParseError as e:
            logger.error(f"❌ Invalid quiz JSON: {e}")
            raise UpstreamUnavailable(f"Invalid quiz JSON: {e}")

        return [
            Question(
                id=idx,
                text=item["question"],
                options=item["options"],
                correctOptionIndex=item["correct"]
            )
            for idx, item in enumerate(parsed, start=1)
        ]


class StaticQuestionSource:
    """Fixed in-memory pool"""

    def __init__(self, questions: List[Question]):
        self.questions = list(questions)

    async def load_pool(self) -> List[Question]:
        return list(self.questions)
