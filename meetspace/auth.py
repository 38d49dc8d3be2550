"""
Caller identity for booking requests.

Authentication happens upstream: the gateway verifies the access token and
forwards the subject and its roles as headers. This module only turns those
headers into a ``CallerIdentity``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from fastapi import Header, HTTPException, status


class UserRole(str, Enum):
    EMPLOYEE = "Employee"
    OFFICE_MANAGER = "OfficeManager"
    ADMIN = "Admin"


ELEVATED_ROLES = frozenset({UserRole.OFFICE_MANAGER, UserRole.ADMIN})


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    is_elevated: bool = False

    @classmethod
    def from_roles(cls, user_id: str, roles: Iterable[str]) -> "CallerIdentity":
        elevated = {role.value for role in ELEVATED_ROLES}
        return cls(user_id=user_id, is_elevated=any(r in elevated for r in roles))


def parse_roles(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [role.strip() for role in raw.split(",") if role.strip()]


async def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_roles: Optional[str] = Header(default=None),
) -> CallerIdentity:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity.",
        )
    return CallerIdentity.from_roles(x_user_id.strip(), parse_roles(x_user_roles))
