"""
Quiz Prompt Builder
Constructs prompts for generating a pool of multiple-choice questions on a topic
"""

EXAMPLE_SCHEMA = """[
  {
    "question": "Which measure discounts all future cash flows to today?",
    "options": ["Net present value", "Payback period", "Book value", "Gross margin"],
    "correct": 0
  },
  {
    "question": "A call option gives its holder the right to...",
    "options": ["Sell an asset", "Buy an asset", "Borrow cash", "Issue shares"],
    "correct": 1
  }
]"""


def build_quiz_prompt(topic: str, num_questions: int = 5) -> str:
    """
    Build a prompt for generating quiz questions on a topic

    Args:
        topic: Subject area, may list sub-topics to mix
        num_questions: Number of questions to generate (default: 5)

    Returns:
        A complete prompt string requesting structured JSON output
    """
    prompt = f"""You are a JSON generator. Create a {num_questions}-question multiple-choice quiz.
Make the questions diverse across this subject: {topic}.

STRICT FORMATTING RULES:
- Output ONLY a valid JSON array
- Do NOT include markdown code blocks (no ```)
- Do NOT include any explanation, preamble, or additional text
- Do NOT include trailing commas
- Each question must have exactly 4 options
- The "correct" field must be the 0-based index (0, 1, 2 or 3) of the right option
- Vary the position of the right option between questions

REQUIRED OUTPUT SCHEMA:
{EXAMPLE_SCHEMA}

Generate {num_questions} questions as a JSON array. Output ONLY the JSON array, nothing else."""

    return prompt
