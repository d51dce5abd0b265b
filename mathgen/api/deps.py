import uuid
from dataclasses import dataclass

from fastapi import Request, Response

from mathgen.core.config import Settings
from mathgen.core.datastore import Datastore
from mathgen.services.llm import TextGenerator

CLIENT_COOKIE = "mpg_id"
CLIENT_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_datastore(request: Request) -> Datastore:
    return request.app.state.datastore


def get_generator(request: Request) -> TextGenerator:
    return request.app.state.generator


@dataclass(frozen=True)
class ClientIdentity:
    client_id: str
    is_new: bool


def get_client_identity(request: Request) -> ClientIdentity:
    """Anonymous identity from the ``mpg_id`` cookie, minted when absent."""
    client_id = request.cookies.get(CLIENT_COOKIE)
    if client_id:
        return ClientIdentity(client_id=client_id, is_new=False)
    return ClientIdentity(client_id=str(uuid.uuid4()), is_new=True)


def remember_client(response: Response, identity: ClientIdentity):
    if identity.is_new:
        response.set_cookie(
            CLIENT_COOKIE,
            identity.client_id,
            max_age=CLIENT_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
            path="/",
        )
