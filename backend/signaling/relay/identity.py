"""Identity resolution for new connections.

A client may present a ``uid`` cookie from an earlier session to keep its
peer id across reconnects.  The cookie is an unsigned soft token, not a
credential: anyone presenting it gets that id.  When no usable cookie is
presented a fresh UUID is generated and returned to the client in a
``Set-Cookie`` header on the upgrade response.
"""
import logging
import uuid
from dataclasses import dataclass
from http.cookies import SimpleCookie
from typing import Callable, Optional

from signaling.config import IdentitySettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Outcome of identity resolution.

    Attributes:
        peer_id: Id to register the connection under.
        issued: True when the id was generated here and should be
            stored by the client.
    """
    peer_id: str
    issued: bool


def resolve_identity(
    token: Optional[str],
    is_taken: Callable[[str], bool],
) -> Identity:
    """Pick the peer id for a new connection.

    Args:
        token: Soft identity token from the request, if any.
        is_taken: Returns True for ids currently registered.

    Returns:
        The resumed token when it is non-empty and not held by a live
        connection, otherwise a freshly generated id.
    """
    if token:
        if not is_taken(token):
            return Identity(peer_id=token, issued=False)
        # A second tab with the same cookie; keep ids unique but leave the
        # client's stored token alone.
        logger.info("Identity %s already connected, assigning a fresh id", token)
        return Identity(peer_id=_generate_peer_id(is_taken), issued=False)

    return Identity(peer_id=_generate_peer_id(is_taken), issued=True)


def _generate_peer_id(is_taken: Callable[[str], bool]) -> str:
    peer_id = str(uuid.uuid4())
    while is_taken(peer_id):
        peer_id = str(uuid.uuid4())
    return peer_id


def build_identity_cookie(peer_id: str, settings: IdentitySettings) -> str:
    """Render the ``Set-Cookie`` value that stores ``peer_id`` client-side.

    The cookie is hidden from scripts, sent on cross-site requests and only
    over secure transport.
    """
    cookie: SimpleCookie = SimpleCookie()
    cookie[settings.cookie_name] = peer_id
    morsel = cookie[settings.cookie_name]
    morsel["path"] = settings.cookie_path
    morsel["httponly"] = True
    morsel["secure"] = True
    morsel["samesite"] = "None"
    if settings.cookie_max_age is not None:
        morsel["max-age"] = settings.cookie_max_age
    return morsel.OutputString()
