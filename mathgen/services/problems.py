"""
Prompt construction and content generation for problems, feedback, hints
and step-by-step solutions.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from mathgen.core.config import Settings
from mathgen.core.errors import InvalidGeneratedContent
from mathgen.models.hint import MAX_HINTS
from mathgen.models.problem import Difficulty, ProblemSession, ProblemType
from mathgen.services.extractor import load_generated_json
from mathgen.services.formatter import format_number
from mathgen.services.llm import TextGenerator, request_text
from mathgen.services.steps import (
    MAX_STEP_LENGTH,
    StepProfile,
    profile_for,
    validate_steps,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_HINT = "Think about which operation fits the question, then try one small step."


class ProblemPayload(BaseModel):
    problem_text: str = Field(min_length=10)
    final_answer: Optional[float] = Field(default=None, allow_inf_nan=False)
    steps: Optional[List[Any]] = None


class SolutionPayload(BaseModel):
    steps: List[Any]


@dataclass(frozen=True)
class GeneratedProblem:
    problem_text: str
    correct_answer: float
    steps: Optional[List[str]]  # None when the steps did not validate


async def generate_valid(
    generator: TextGenerator,
    prompt: str,
    parse: Callable[[str], T],
    settings: Settings,
    label: str,
) -> T:
    """
    Generate text and parse it, regenerating when the output is malformed.

    Transport failures are retried inside ``request_text``; malformed content
    triggers a fresh generation up to ``settings.content_max_attempts`` times.
    """
    last_error: Optional[InvalidGeneratedContent] = None
    for attempt in range(1, settings.content_max_attempts + 1):
        raw = await request_text(generator, prompt, settings.generation_policy, label)
        try:
            return parse(raw)
        except InvalidGeneratedContent as e:
            last_error = e
            logger.warning(
                f"{label}: malformed output on attempt {attempt}/"
                f"{settings.content_max_attempts} ({e.reason}); raw={e.raw!r}"
            )
    assert last_error is not None
    raise last_error


def _validated(model: type, data: Any, raw: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidGeneratedContent(
            f"generated JSON does not match schema: {e.error_count()} issue(s)", raw=raw
        ) from e


# -- problems -------------------------------------------------------------


def build_problem_prompt(
    difficulty: Difficulty, problem_type: ProblemType, profile: StepProfile
) -> str:
    if problem_type == ProblemType.MIXED:
        type_instruction = (
            "The required operations may include addition, subtraction, "
            "multiplication, and division. Choose what fits naturally for the story."
        )
    else:
        type_instruction = (
            f"The required operation used to solve must be {problem_type.value}."
        )

    return f"""
You are generating ONE Primary 5 (Grade 5) math WORD PROBLEM.
Difficulty: {difficulty.value}
Problem Type: {problem_type.value}

Rules:
- {type_instruction}
- One short paragraph (<= 80 words).
- Topics: whole numbers, time/money, simple rates; keep numbers age-appropriate.
- Scale the numbers and steps to match the difficulty:
  - Easy: 1-2 steps, small integers.
  - Medium: 2-3 steps, moderate integers or simple fractions.
  - Hard: up to 3 steps, centered on the specified type if not mixed.
- Also give a worked solution as {profile.min_total}-{profile.max_total} short steps
  (<= {MAX_STEP_LENGTH} characters each, no LaTeX, no markdown).
- The last step must be exactly "Final answer: <number>": an integer without
  decimals, otherwise exactly two decimal places rounded half-up. No units.

Return ONLY JSON:
{{"problem_text": "...", "final_answer": 123, "steps": ["Step 1 ...", "Final answer: 123"]}}
"""


def parse_problem(raw: str, profile: StepProfile) -> GeneratedProblem:
    payload = _validated(ProblemPayload, load_generated_json(raw), raw)
    check = validate_steps(payload.steps, profile, final_answer=payload.final_answer)
    if check.final_answer is None:
        raise InvalidGeneratedContent(check.reason or "no final answer", raw=raw)
    if not check.ok:
        logger.info(f"Generated steps rejected ({check.reason}); solution deferred")
    return GeneratedProblem(
        problem_text=payload.problem_text.strip(),
        correct_answer=check.final_answer,
        steps=check.steps if check.ok else None,
    )


async def generate_problem(
    generator: TextGenerator,
    difficulty: Difficulty,
    problem_type: ProblemType,
    settings: Settings,
) -> GeneratedProblem:
    profile = profile_for(difficulty)
    prompt = build_problem_prompt(difficulty, problem_type, profile)
    return await generate_valid(
        generator,
        prompt,
        lambda raw: parse_problem(raw, profile),
        settings,
        label="problem generation",
    )


# -- feedback -------------------------------------------------------------


def build_feedback_prompt(
    session: ProblemSession, user_answer: float, is_correct: bool
) -> str:
    return f"""
Provide brief, encouraging feedback for a Primary 5 student.

Problem:
\"\"\"{session.problem_text}\"\"\"

Correct answer: {format_number(session.correct_answer)}
Student answer: {format_number(user_answer)}
Result: {"correct" if is_correct else "incorrect"}

Rules:
- If incorrect: suggest the likely mistake and outline a short correct method (2-4 sentences).
- If correct: praise, rephrase the problem & correct answer; then suggest one small next step (1-2 sentences); strictly do not ask another question.
Return plain text only.
"""


async def generate_feedback(
    generator: TextGenerator,
    session: ProblemSession,
    user_answer: float,
    is_correct: bool,
    settings: Settings,
) -> str:
    prompt = build_feedback_prompt(session, user_answer, is_correct)
    return await request_text(
        generator, prompt, settings.generation_policy, "feedback generation"
    )


# -- hints ----------------------------------------------------------------


def build_hint_prompt(
    session: ProblemSession,
    prior_hints: List[str],
    hint_number: int,
    user_answer: Optional[float] = None,
) -> str:
    history = ""
    if prior_hints:
        numbered = "\n".join(f"{i}) {h}" for i, h in enumerate(prior_hints, 1))
        history = f"Previous hints ({len(prior_hints)}):\n{numbered}"
    tried = (
        f"Student tried: {format_number(user_answer)}" if user_answer is not None else ""
    )
    problem_type = session.problem_type.value if session.problem_type else "addition"

    return f"""
Provide a single, concise hint for a Primary 5 student.
Explain it simply and kindly. Do not reveal the final numeric answer.

Problem:
\"\"\"{session.problem_text}\"\"\"

Difficulty: {session.difficulty.value if session.difficulty else "Medium"}
Type: {problem_type}
{tried}

{history}

Rules:
- Produce the NEXT hint in a sequence. Do not repeat or rephrase any previous hint; add one new actionable idea that moves the student forward.
- 1-2 sentences max.
- Focus on the next micro-step or key representation (diagram/unit/operation) appropriate for {problem_type}.
- No spoilers of the final answer. Return plain text only.
Hint number to produce now: {hint_number}/{MAX_HINTS}.
"""


async def generate_hint(
    generator: TextGenerator,
    session: ProblemSession,
    prior_hints: List[str],
    hint_number: int,
    settings: Settings,
    user_answer: Optional[float] = None,
) -> str:
    prompt = build_hint_prompt(session, prior_hints, hint_number, user_answer)
    text = await request_text(
        generator, prompt, settings.generation_policy, "hint generation"
    )
    return text or FALLBACK_HINT


# -- solutions ------------------------------------------------------------


def build_solution_prompt(session: ProblemSession, profile: StepProfile) -> str:
    return f"""
You are a friendly Primary 5 (Grade 5) teacher. Provide a short step-by-step solution for the problem below using clear, simple steps and ending with a single numeric final answer.

Problem:
{session.problem_text}

OUTPUT REQUIREMENTS (STRICT):
- Return JSON only. No backticks, no code fences, no extra text.
- Schema exactly: {{"steps": ["Step 1 ...", "Step 2 ...", "...", "Final answer: <number>"]}}
- "steps" must be an array of {profile.min_total}-{profile.max_total} short strings (no markdown).

CONTENT RULES:
- DO NOT USE LATEX.
- If any quantities are in fraction form, include one step showing both forms, e.g. "Convert: 3/4 = 0.75".
- When converting to decimal, use round half-up to 2 decimal places (e.g., 1.245 -> 1.25).
- Do not reveal multiple possible answers. Choose one correct result.
- Do not repeat the full problem text in the steps.
- Keep each step short and actionable (<={MAX_STEP_LENGTH} characters).

FINAL STEP:
- The last step must be exactly "Final answer: <number>" with no extra words.
- If the result is an integer, output it without decimals (e.g., 15).
- Otherwise output exactly two decimal places (e.g., 12.50), using round half-up.
- Do not include units or words after the number.
"""


def parse_solution(raw: str, profile: StepProfile, fallback_answer: float) -> List[str]:
    payload = _validated(SolutionPayload, load_generated_json(raw), raw)
    check = validate_steps(payload.steps, profile, final_answer=fallback_answer)
    if not check.ok:
        raise InvalidGeneratedContent(check.reason or "invalid steps", raw=raw)
    return check.steps


async def generate_solution_steps(
    generator: TextGenerator, session: ProblemSession, settings: Settings
) -> List[str]:
    profile = profile_for(session.difficulty)
    prompt = build_solution_prompt(session, profile)
    return await generate_valid(
        generator,
        prompt,
        lambda raw: parse_solution(raw, profile, session.correct_answer),
        settings,
        label="solution generation",
    )
