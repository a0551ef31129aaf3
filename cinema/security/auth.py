from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from cinema.domain.enums import GlobalRole
from cinema.domain.errors import UnauthenticatedError
from cinema.security.config import PolicyConfig
from cinema.security.context import Actor
from cinema.stores.interfaces import EntityStore

logger = logging.getLogger(__name__)


def extract_user_id(request: Request, config: PolicyConfig) -> int | None:
    """
    Demo auth: extract bearer token and treat it as a user_id.

    - Input: `Authorization: Bearer <token>`
    - Demo behavior: `<token>` must be an integer user id
    - No header at all means the caller is a visitor (returns None)
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.debug("No %s header; treating caller as visitor path=%s", header_name, request.url.path)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
        )

    try:
        return int(token)
    except ValueError as exc:
        logger.warning("Bearer token not an int (demo expects user_id) path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid bearer token for demo (expected integer user id).",
        ) from exc


def load_actor(store: EntityStore, user_id: int) -> Actor:
    """Resolve a user id into an Actor; the role string is normalized here and nowhere else."""

    user = store.get_user(user_id)
    if user is None or not user.active:
        logger.info("Rejected identity user_id=%s (unknown or inactive)", user_id)
        raise UnauthenticatedError("Invalid or inactive user")

    return Actor(user_id=user.id, global_role=GlobalRole.parse(user.global_role), active=user.active)
