from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    provider: str = "bearer-user-id"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class WorkflowPolicy(BaseModel):
    """
    Policy parameters the workflow core reads at evaluation time.

    Notes:
    - `fail_open_on_unknown_for_create`: when the program a create-time check
      refers to was not loaded, allow (True) or deny (False). Every other
      action always fails closed on unknown roles.
    - `my_screenings_visibility` / `review_visibility`: who may list their own
      submissions / their review queue.
    """

    fail_open_on_unknown_for_create: bool = True
    my_screenings_visibility: Literal["all_users", "submitter_only"] = "all_users"
    review_visibility: Literal["all_users", "staff_only"] = "all_users"
    max_page_size: int = Field(default=200, ge=1)


class PolicyConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    policy: WorkflowPolicy = Field(default_factory=WorkflowPolicy)


class PolicyConfig:
    """
    Runtime helper around the validated config.
    """

    def __init__(self, model: PolicyConfigModel):
        self.model = model

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    @property
    def policy(self) -> WorkflowPolicy:
        return self.model.policy


def default_policy_config() -> PolicyConfig:
    return PolicyConfig(PolicyConfigModel())


def load_policy_config(path: Path) -> PolicyConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "cinema" not in raw:
        raise ValueError(f"Missing top-level 'cinema' key in config: {path}")

    model = PolicyConfigModel.model_validate(raw["cinema"] or {})
    return PolicyConfig(model)
