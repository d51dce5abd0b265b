from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from mathgen.api.deps import get_datastore, get_settings
from mathgen.core.config import Settings
from mathgen.core.datastore import Datastore
from mathgen.core.errors import is_transient_persistence_error
from mathgen.models.problem import Difficulty
from mathgen.models.submission import Submission

router = APIRouter()


def _submission_payload(sub: Submission) -> dict:
    return {
        "id": sub.id,
        "created_at": sub.created_at,
        "user_answer": sub.user_answer,
        "is_correct": sub.is_correct,
        "feedback_text": sub.feedback_text,
    }


@router.get("/history")
async def get_history(
    limit: Optional[int] = Query(None, ge=1),
    before: Optional[datetime] = Query(None),
    before_id: Optional[str] = Query(None, max_length=36),
    datastore: Datastore = Depends(get_datastore),
    settings: Settings = Depends(get_settings),
):
    page_size = min(limit or settings.history_page_size, settings.history_max_page_size)

    rows = await settings.read_policy.run(
        lambda: datastore.list_history(page_size, before, before_id),
        retry_if=is_transient_persistence_error,
        label="history read",
    )

    items = []
    for session, submissions in rows:
        latest = submissions[0] if submissions else None
        items.append(
            {
                "id": session.id,
                "created_at": session.created_at,
                "difficulty": (session.difficulty or Difficulty.MEDIUM).value,
                "problem_type": session.problem_type.value,
                "problem_text": session.problem_text,
                "correct_answer": session.correct_answer,
                "revealed_at": session.revealed_at,
                "has_submission": latest is not None,
                "last_submission": _submission_payload(latest) if latest else None,
                "submissions": [_submission_payload(s) for s in submissions],
            }
        )

    last = rows[-1][0] if len(rows) == page_size else None
    return {
        "items": items,
        "next_before": last.created_at if last else None,
        "next_before_id": last.id if last else None,
    }


@router.delete("/history")
async def clear_history(
    datastore: Datastore = Depends(get_datastore),
    settings: Settings = Depends(get_settings),
):
    deleted = await settings.write_policy.run(
        datastore.clear_history,
        retry_if=is_transient_persistence_error,
        label="history clear",
    )
    return {"ok": True, "deleted": deleted}
