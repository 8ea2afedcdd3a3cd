"""Execution-environment lookups: trigger branch and deploy credential."""

from __future__ import annotations

import os
from typing import Mapping, Optional, Sequence

from .models import TriggerContext

BRANCH_ENV_KEYS: Sequence[str] = (
    "SITEPIPE_BRANCH",
    "CIRCLE_BRANCH",
    "GITHUB_REF_NAME",
    "BRANCH_NAME",
)
CREDENTIAL_ENV_KEYS: Sequence[str] = (
    "SITEPIPE_DEPLOY_TOKEN",
    "GH_TOKEN",
    "GITHUB_TOKEN",
)

_REDACTED = "***"


def detect_trigger(
    env: Mapping[str, str] | None = None, *, branch: str | None = None
) -> TriggerContext:
    """Build the trigger context; an explicit ``branch`` wins over the environment."""
    if branch:
        return TriggerContext(branch=branch.strip())
    value = _first_env_value(BRANCH_ENV_KEYS, env)
    return TriggerContext(branch=value.strip() if value else None)


def deploy_credential(env: Mapping[str, str] | None = None) -> Optional[str]:
    return _first_env_value(CREDENTIAL_ENV_KEYS, env)


def redact(text: str, secret: str | None) -> str:
    if not secret:
        return text
    return text.replace(secret, _REDACTED)


def _first_env_value(keys: Sequence[str], env: Mapping[str, str] | None) -> Optional[str]:
    source = os.environ if env is None else env
    for key in keys:
        value = source.get(key)
        if value:
            return value
    return None


__all__ = [
    "BRANCH_ENV_KEYS",
    "CREDENTIAL_ENV_KEYS",
    "deploy_credential",
    "detect_trigger",
    "redact",
]
