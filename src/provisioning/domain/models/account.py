from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field


class Account(BaseModel):
    """Credentialed account as seen through the identity store.

    The password never leaves the identity store, so it is not part of this
    model.
    """

    id: str
    email: str
    email_confirmed: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)
