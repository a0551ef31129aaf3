from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cinema.core.dispatcher import ActionDispatcher
from cinema.core.policy import PermissionEvaluator
from cinema.core.visibility import VisibilityService
from cinema.db.session import get_db
from cinema.domain.errors import UnauthenticatedError
from cinema.security.auth import extract_user_id, load_actor
from cinema.security.config import PolicyConfig
from cinema.security.context import Actor
from cinema.stores.interfaces import EntityStore
from cinema.stores.sqlalchemy_store import SqlAlchemyEntityStore


def get_policy_config(request: Request) -> PolicyConfig:
    config = getattr(request.app.state, "policy_config", None)
    if config is None:
        raise RuntimeError("Policy config not loaded. Did app startup run?")
    return config


def get_store(db: Session = Depends(get_db)) -> EntityStore:
    return SqlAlchemyEntityStore(db)


def get_dispatcher(
    store: EntityStore = Depends(get_store),
    config: PolicyConfig = Depends(get_policy_config),
) -> ActionDispatcher:
    return ActionDispatcher(store, PermissionEvaluator(config.policy))


def get_visibility(
    store: EntityStore = Depends(get_store),
    config: PolicyConfig = Depends(get_policy_config),
) -> VisibilityService:
    return VisibilityService(store, config.policy)


def get_optional_actor(
    request: Request,
    config: PolicyConfig = Depends(get_policy_config),
    store: EntityStore = Depends(get_store),
) -> Actor | None:
    """
    Identity for this request, or None for a visitor.

    A header naming an unknown or inactive user is an error rather than
    a silent downgrade to visitor.
    """

    user_id = extract_user_id(request, config)
    if user_id is None:
        return None

    actor = load_actor(store, user_id)
    request.state.actor = actor
    return actor


def get_current_actor(actor: Actor | None = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise UnauthenticatedError("Authentication required")
    return actor
