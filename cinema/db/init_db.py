from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from cinema.db.base import Base
from cinema.db.session import SessionLocal, engine
from cinema.models import cinema as _cinema_models  # noqa: F401  (register tables on Base.metadata)
from cinema.models.security import User

logger = logging.getLogger(__name__)


def init_db(seed: bool = True) -> None:
    """
    Create tables and, on an empty database, seed demo accounts.

    The seeded ids are stable so the demo identity provider
    (`Authorization: Bearer <user id>`) can be tried right away.
    """

    Base.metadata.create_all(bind=engine)

    if not seed:
        return

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db)
        logger.info("Seeded demo users")


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    # Role strings are stored as the identity provider issues them.
    db.add_all(
        [
            User(id=1, username="admin", display_name="Site Admin", global_role="ROLE_ADMIN", is_active=True),
            User(id=2, username="alice", display_name="Alice Programmer", global_role="ROLE_USER", is_active=True),
            User(id=3, username="bob", display_name="Bob Staff", global_role="USER", is_active=True),
            User(id=4, username="carol", display_name="Carol Submitter", global_role="user", is_active=True),
            User(id=5, username="dave", display_name="Dave Inactive", global_role="USER", is_active=False),
        ]
    )
    db.commit()
