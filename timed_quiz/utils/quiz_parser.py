"""
Quiz Parser
Parses and validates LLM-generated quiz JSON responses
"""
import json
import re
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class QuizParseError(Exception):
    """Base exception for quiz parsing errors"""
    pass


class InvalidJSONError(QuizParseError):
    """Raised when JSON cannot be parsed even after cleanup"""
    pass


class QuizFormatError(QuizParseError):
    """Raised when quiz structure validation fails"""
    pass


OPTION_LETTERS = "ABCD"
REQUIRED_OPTIONS_COUNT = 4


def parse_correct_option(value: Any) -> int:
    """
    Convert an answer key to a 0-based option index

    Accepts an index (0-3, int or numeric string) or a letter (A-D, any case).

    Raises:
        QuizFormatError: If the value is neither
    """
    if isinstance(value, bool):
        raise QuizFormatError(f"Invalid answer key: {value!r}")

    if isinstance(value, int):
        index = value
    elif isinstance(value, str) and value.strip():
        text = value.strip().upper()
        if len(text) == 1 and text in OPTION_LETTERS:
            return OPTION_LETTERS.index(text)
        if not text.isdigit():
            raise QuizFormatError(f"Invalid answer key: {value!r}")
        index = int(text)
    else:
        raise QuizFormatError(f"Invalid answer key: {value!r}")

    if not 0 <= index < REQUIRED_OPTIONS_COUNT:
        raise QuizFormatError(f"Answer index out of range: {index}")
    return index


def _strip_markdown(text: str) -> str:
    """Remove markdown code block formatting"""
    # Remove ```json ... ``` or ``` ... ```
    pattern = r"```(?:json)?\s*([\s\S]*?)\s*```"
    match = re.search(pattern, text)
    if match:
        return match.group(1).strip()

    return text.replace("```", "").strip()


def _extract_json_array(text: str) -> str:
    """
    Extract JSON array from text by finding outermost brackets

    Raises:
        InvalidJSONError: If no valid array brackets found
    """
    first_bracket = text.find("[")
    last_bracket = text.rfind("]")

    if first_bracket == -1 or last_bracket == -1 or first_bracket >= last_bracket:
        raise InvalidJSONError("No JSON array found in response")

    return text[first_bracket:last_bracket + 1]


def _fix_common_json_issues(text: str) -> str:
    """Fix trailing commas, control characters and raw newlines"""
    text = re.sub(r",\s*([}\]])", r"\1", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)

    lines = text.split("\n")
    return " ".join(line.strip() for line in lines if line.strip())


def _clean_response(raw_response: str) -> str:
    text = _strip_markdown(raw_response.strip())
    text = _extract_json_array(text)
    return _fix_common_json_issues(text)


def _validate_question(item: Dict[str, Any], index: int) -> Dict[str, Any]:
    """
    Validate a single question and normalize it

    Returns:
        {"question": str, "options": [4 x str], "correct": int}

    Raises:
        QuizFormatError: If validation fails
    """
    label = f"Question {index + 1}"

    text = item.get("question")
    if not isinstance(text, str) or not text.strip():
        raise QuizFormatError(f"{label}: 'question' must be a non-empty string")

    options = item.get("options")
    if not isinstance(options, list):
        raise QuizFormatError(f"{label}: 'options' must be a list")

    if len(options) != REQUIRED_OPTIONS_COUNT:
        raise QuizFormatError(
            f"{label}: Expected {REQUIRED_OPTIONS_COUNT} options, got {len(options)}"
        )

    for i, opt in enumerate(options):
        if not isinstance(opt, str) or not opt.strip():
            raise QuizFormatError(f"{label}: Option {i + 1} must be a non-empty string")

    key = item.get("correct", item.get("answer"))
    if key is None:
        raise QuizFormatError(f"{label}: Missing 'correct' (or 'answer') field")

    try:
        correct = parse_correct_option(key)
    except QuizFormatError as e:
        raise QuizFormatError(f"{label}: {e}")

    return {
        "question": text.strip(),
        "options": [opt.strip() for opt in options],
        "correct": correct
    }


def parse_quiz_json(raw_response: str) -> List[Dict[str, Any]]:
    """
    Parse and validate quiz JSON from LLM response

    Attempts direct JSON parsing first, then applies cleanup rules
    if initial parsing fails.

    Args:
        raw_response: Raw string response from LLM

    Returns:
        List of validated quiz question dictionaries, each containing:
            - question: str
            - options: List[str] (exactly 4 items)
            - correct: int (0-3)

    Raises:
        InvalidJSONError: If JSON cannot be parsed after cleanup
        QuizFormatError: If quiz structure is invalid

    Example:
        >>> raw = '[{"question": "2+2?", "options": ["3","4","5","6"], "correct": 1}]'
        >>> parse_quiz_json(raw)[0]["correct"]
        1
    """
    if not raw_response or not raw_response.strip():
        raise InvalidJSONError("Empty response received")

    logger.debug(f"Parsing quiz response ({len(raw_response)} chars)")

    try:
        data = json.loads(raw_response.strip())
    except json.JSONDecodeError as e:
        logger.debug(f"Direct parse failed: {e}. Attempting cleanup...")
        try:
            data = json.loads(_clean_response(raw_response))
        except json.JSONDecodeError as e2:
            logger.error(f"JSON parse failed after cleanup: {e2}")
            raise InvalidJSONError(f"Failed to parse JSON: {e2}. Original error: {e}")

    if not isinstance(data, list):
        raise QuizFormatError(f"Expected a JSON array, got {type(data).__name__}")

    if len(data) == 0:
        raise QuizFormatError("Quiz array is empty")

    validated_questions = []

    for idx, item in enumerate(data):
        if not isinstance(item, dict):
            raise QuizFormatError(
                f"Question {idx + 1}: Expected object, got {type(item).__name__}"
            )
        validated_questions.append(_validate_question(item, idx))

    logger.info(f"✅ Successfully parsed {len(validated_questions)} quiz questions")

    return validated_questions
