from fastapi import APIRouter, Depends, Request, Response

from mathgen.api.deps import CLIENT_COOKIE, get_datastore, get_settings
from mathgen.core.config import Settings
from mathgen.core.datastore import Datastore
from mathgen.core.errors import is_transient_persistence_error
from mathgen.services.scoring import ScoreState

router = APIRouter()

NO_CACHE = "no-store, no-cache, must-revalidate"


@router.get("/score")
async def get_score(
    request: Request,
    response: Response,
    datastore: Datastore = Depends(get_datastore),
    settings: Settings = Depends(get_settings),
):
    response.headers["Cache-Control"] = NO_CACHE

    client_id = request.cookies.get(CLIENT_COOKIE)
    if not client_id:
        return {"score": None}

    row = await settings.read_policy.run(
        lambda: datastore.get_score(client_id),
        retry_if=is_transient_persistence_error,
        label="score read",
    )
    state = ScoreState.from_row(row)
    if state is None:
        return {"score": None}
    return {"score": state.to_payload(client_id)}
