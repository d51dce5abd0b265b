import asyncio
import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from mathgen.api.deps import (
    ClientIdentity,
    get_client_identity,
    get_datastore,
    get_generator,
    get_settings,
    remember_client,
)
from mathgen.core.config import Settings
from mathgen.core.datastore import Datastore
from mathgen.core.errors import is_transient_persistence_error
from mathgen.models.hint import MAX_HINTS, Hint
from mathgen.models.problem import Difficulty, ProblemSession, ProblemType
from mathgen.models.solution import Solution
from mathgen.models.submission import Submission
from mathgen.services import problems
from mathgen.services.formatter import answers_match
from mathgen.services.gating import GateRejection, SessionGate
from mathgen.services.llm import TextGenerator
from mathgen.services.scoring import (
    HintEvent,
    ScoreState,
    SubmissionEvent,
    hint_penalty,
    record_event,
)

logger = logging.getLogger(__name__)

router = APIRouter()

Answer = Annotated[float, Field(strict=True, allow_inf_nan=False)]


class GenerateProblem(BaseModel):
    difficulty: Difficulty = Difficulty.MEDIUM
    problem_type: ProblemType = ProblemType.ADDITION


class SubmitAnswer(BaseModel):
    session_id: UUID
    user_answer: Answer


class RequestHint(BaseModel):
    session_id: UUID
    user_answer: Optional[Answer] = None


class RevealSolution(BaseModel):
    session_id: UUID


def rejection_response(rejection: GateRejection, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=rejection.status_code,
        content={"error": rejection.code, "message": rejection.message, **extra},
    )


async def _read(settings: Settings, operation, label: str):
    return await settings.read_policy.run(
        operation, retry_if=is_transient_persistence_error, label=label
    )


async def _write(settings: Settings, operation, label: str):
    return await settings.write_policy.run(
        operation, retry_if=is_transient_persistence_error, label=label
    )


async def _load_session(
    datastore: Datastore, settings: Settings, session_id: str
) -> ProblemSession:
    session = await _read(
        settings, lambda: datastore.get_problem_session(session_id), "session read"
    )
    if session is None:
        raise HTTPException(404, "Session not found")
    return session


@router.post("/generate-problem")
async def generate_problem(
    data: Optional[GenerateProblem] = None,
    datastore: Datastore = Depends(get_datastore),
    generator: TextGenerator = Depends(get_generator),
    settings: Settings = Depends(get_settings),
):
    data = data or GenerateProblem()

    generated = await problems.generate_problem(
        generator, data.difficulty, data.problem_type, settings
    )

    session = await _write(
        settings,
        lambda: datastore.insert(
            ProblemSession,
            problem_text=generated.problem_text,
            correct_answer=generated.correct_answer,
            difficulty=data.difficulty,
            problem_type=data.problem_type,
        ),
        "session insert",
    )

    if generated.steps:
        await _write(
            settings,
            lambda: datastore.insert_or_reuse(
                Solution, {"session_id": session.id}, {"steps": generated.steps}
            ),
            "solution insert",
        )

    logger.info(
        f"Created {data.difficulty.value}/{data.problem_type.value} session {session.id}"
    )
    return {
        "session_id": session.id,
        "problem_text": session.problem_text,
        "difficulty": session.difficulty.value,
        "problem_type": session.problem_type.value,
    }


@router.post("/submit-answer")
async def submit_answer(
    data: SubmitAnswer,
    response: Response,
    datastore: Datastore = Depends(get_datastore),
    generator: TextGenerator = Depends(get_generator),
    settings: Settings = Depends(get_settings),
    identity: ClientIdentity = Depends(get_client_identity),
):
    session_id = str(data.session_id)

    session, solved = await asyncio.gather(
        _load_session(datastore, settings, session_id),
        _read(
            settings,
            lambda: datastore.has_correct_submission(session_id),
            "solved check",
        ),
    )

    gate = SessionGate(solved=solved, revealed=session.revealed_at is not None)
    rejection = gate.check_submission()
    if rejection:
        return rejection_response(rejection)

    is_correct = answers_match(data.user_answer, session.correct_answer)
    feedback = await problems.generate_feedback(
        generator, session, data.user_answer, is_correct, settings
    )

    fields = {"user_answer": data.user_answer, "feedback_text": feedback}
    if is_correct:
        submission, created = await _write(
            settings,
            lambda: datastore.insert_or_reuse(
                Submission, {"session_id": session_id, "is_correct": True}, fields
            ),
            "submission insert",
        )
        if not created:
            # Lost the race against a concurrent correct submission.
            return rejection_response(GateRejection.ALREADY_SOLVED)
    else:
        submission = await _write(
            settings,
            lambda: datastore.insert(
                Submission, session_id=session_id, is_correct=False, **fields
            ),
            "submission insert",
        )

    state = await record_event(
        datastore,
        identity.client_id,
        SubmissionEvent(correct=is_correct),
        settings.read_policy,
        settings.write_policy,
    )
    remember_client(response, identity)

    return {
        "submission_id": submission.id,
        "is_correct": submission.is_correct,
        "feedback": submission.feedback_text,
        "score": state.to_payload(identity.client_id),
    }


@router.post("/request-hint")
async def request_hint(
    data: RequestHint,
    response: Response,
    datastore: Datastore = Depends(get_datastore),
    generator: TextGenerator = Depends(get_generator),
    settings: Settings = Depends(get_settings),
    identity: ClientIdentity = Depends(get_client_identity),
):
    session_id = str(data.session_id)

    session, hint_count, prior = await asyncio.gather(
        _load_session(datastore, settings, session_id),
        _read(settings, lambda: datastore.count_hints(session_id), "hint count"),
        _read(settings, lambda: datastore.list_hints(session_id), "hint list"),
    )

    rejection = SessionGate(hint_count=hint_count).check_hint()
    if rejection:
        return rejection_response(
            rejection, hint_count=hint_count, max_hints=MAX_HINTS
        )

    hint_number = hint_count + 1
    hint_text = await problems.generate_hint(
        generator,
        session,
        [h.hint_text for h in prior if h.hint_text],
        hint_number,
        settings,
        user_answer=data.user_answer,
    )

    hint, created = await _write(
        settings,
        lambda: datastore.insert_or_reuse(
            Hint,
            {"session_id": session_id, "hint_number": hint_number},
            {"hint_text": hint_text},
        ),
        "hint insert",
    )

    if created:
        deduction = hint_penalty(hint_number)
        state = await record_event(
            datastore,
            identity.client_id,
            HintEvent(hint_number=hint_number),
            settings.read_policy,
            settings.write_policy,
        )
    else:
        # A concurrent request already stored this hint and charged for it.
        deduction = 0
        row = await _read(
            settings, lambda: datastore.get_score(identity.client_id), "score read"
        )
        state = ScoreState.from_row(row) or ScoreState()
    remember_client(response, identity)

    return {
        "hint_id": hint.id,
        "hint_text": hint.hint_text,
        "created_at": hint.created_at,
        "hint_count": hint_number,
        "max_hints": MAX_HINTS,
        "deduction_applied": deduction,
        "score": state.to_payload(identity.client_id),
    }


@router.post("/reveal-solution")
async def reveal_solution(
    data: RevealSolution,
    datastore: Datastore = Depends(get_datastore),
    generator: TextGenerator = Depends(get_generator),
    settings: Settings = Depends(get_settings),
):
    session_id = str(data.session_id)

    session, solution = await asyncio.gather(
        _load_session(datastore, settings, session_id),
        _read(settings, lambda: datastore.get_solution(session_id), "solution read"),
    )

    if solution is None:
        steps = await problems.generate_solution_steps(generator, session, settings)
        solution, _ = await _write(
            settings,
            lambda: datastore.insert_or_reuse(
                Solution, {"session_id": session_id}, {"steps": steps}
            ),
            "solution insert",
        )

    if session.revealed_at is None:
        await _write(
            settings, lambda: datastore.mark_revealed(session_id), "reveal update"
        )

    return {"steps": solution.steps}
