from dataclasses import dataclass
from typing import Literal

from fastapi import Header

Role = Literal["poster", "worker"]


@dataclass(frozen=True)
class Actor:
    """The verified caller, as asserted by the upstream identity provider."""

    user_id: str
    role: Role


async def get_current_actor(
    x_user_id: str = Header(..., min_length=1),
    x_user_role: Role = Header(...),
) -> Actor:
    return Actor(user_id=x_user_id, role=x_user_role)
