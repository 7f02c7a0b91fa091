"""Authentication helpers for FastAPI endpoints.

Sessions are owned by the upstream gateway, which forwards the verified identity
as X-User-Id / X-User-Roles headers. This module only turns those headers into an
AuthenticatedUser and enforces role requirements.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, Header, HTTPException, status

from campusmod.settings import settings

MODERATOR_ROLES = ("faculty", "admin")


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	roles: Tuple[str, ...] = ()

	def has_role(self, role: str) -> bool:
		return role in self.roles

	@property
	def is_moderator(self) -> bool:
		if any(self.has_role(role) for role in MODERATOR_ROLES):
			return True
		return self.id in settings.moderation_staff_ids


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_roles: Optional[str] = Header(default=None, alias="X-User-Roles"),
) -> AuthenticatedUser:
	user_id = (x_user_id or "").strip()
	if not user_id:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	roles = tuple(part.strip() for part in (x_user_roles or "").split(",") if part.strip())
	return AuthenticatedUser(id=user_id, roles=roles)


async def get_moderator(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
	if user.is_moderator:
		return user
	raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")
