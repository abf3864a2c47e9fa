"""User and project administration."""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from ragtracker.auth.permissions import Caller, require_role
from ragtracker.errors import NotFound, ValidationFailed
from ragtracker.events.bus import EventBus
from ragtracker.events.types import EventType
from ragtracker.models.project import VALID_CONTRACT_TYPES, VALID_STATUSES, Project
from ragtracker.models.user import VALID_ROLES, User
from ragtracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)

_USER_FIELDS = {"name", "email", "password_hash", "role", "is_active"}
_PROJECT_FIELDS = {"name", "client", "contract_type", "pm_id", "status"}


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _require_text(value: str | None, label: str) -> str:
    if not value or not value.strip():
        raise ValidationFailed(f"{label} cannot be empty")
    return value.strip()


class Directory:
    """Admin-managed users and projects, plus role-scoped project listing."""

    def __init__(self, store: StorageBackend, event_bus: EventBus) -> None:
        """Initialize Directory.

        Args:
            store: Storage backend for persistence
            event_bus: Event bus for emitting events
        """
        self._store = store
        self._event_bus = event_bus

    # --- Users ---

    async def create_user(
        self,
        caller: Caller,
        *,
        name: str,
        email: str,
        role: str,
        password_hash: str | None = None,
    ) -> User:
        """Create a user.

        Raises:
            AccessDenied: If the caller is not an admin
            ValidationFailed: If name, email or role is invalid
            Conflict: If the email is already in use
        """
        require_role(caller, "admin")
        return await self._insert_user(
            name=name, email=email, role=role, password_hash=password_hash
        )

    async def bootstrap_admin(self, *, name: str, email: str) -> User:
        """Create the first admin of an empty directory."""
        if await self._store.list_users(role="admin"):
            raise ValidationFailed("An admin already exists")
        return await self._insert_user(name=name, email=email, role="admin")

    async def _insert_user(
        self, *, name: str, email: str, role: str, password_hash: str | None = None
    ) -> User:
        if role not in VALID_ROLES:
            raise ValidationFailed(f"Invalid role: {role}. Must be one of {sorted(VALID_ROLES)}")
        email = _require_text(email, "Email")
        if "@" not in email:
            raise ValidationFailed(f"Invalid email: {email}")

        user = User(
            name=_require_text(name, "Name"),
            email=email,
            role=role,
            password_hash=password_hash,
        )
        await self._store.insert_user(user.to_storage())
        logger.info("Created user %s (%s, role=%s)", user.id, user.email, user.role)
        await self._event_bus.emit(
            EventType.USER_CREATED, {"user_id": user.id, "role": user.role}
        )
        return user

    async def get_user(self, user_id: str) -> User | None:
        data = await self._store.get_user(user_id)
        return User(**data) if data else None

    async def update_user(self, caller: Caller, user_id: str, **updates: Any) -> User:
        """Update name, email, role, active flag or password hash.

        An admin may not demote or deactivate themself.
        """
        require_role(caller, "admin")
        updates = {k: v for k, v in updates.items() if k in _USER_FIELDS and v is not None}

        if user_id == caller.id:
            if updates.get("role", "admin") != "admin":
                raise ValidationFailed("You cannot change your own role")
            if updates.get("is_active") is False:
                raise ValidationFailed("You cannot deactivate your own account")
        if "role" in updates and updates["role"] not in VALID_ROLES:
            raise ValidationFailed(f"Invalid role: {updates['role']}")
        if "name" in updates:
            updates["name"] = _require_text(updates["name"], "Name")
        if "email" in updates:
            updates["email"] = _require_text(updates["email"], "Email").lower()

        updates["updated_at"] = _now()
        data = await self._store.update_user(user_id, updates)
        if data is None:
            raise NotFound(f"User not found: {user_id}")

        await self._event_bus.emit(
            EventType.USER_UPDATED, {"user_id": user_id, "fields": sorted(updates)}
        )
        return User(**data)

    async def remove_user(self, caller: Caller, user_id: str) -> None:
        """Hard-delete a user; their projects become unassigned."""
        require_role(caller, "admin")
        if user_id == caller.id:
            raise ValidationFailed("You cannot delete your own account")
        if not await self._store.delete_user(user_id):
            raise NotFound(f"User not found: {user_id}")
        logger.info("Removed user %s", user_id)
        await self._event_bus.emit(EventType.USER_REMOVED, {"user_id": user_id})

    async def list_users(self, caller: Caller, *, role: str | None = None) -> list[User]:
        require_role(caller, "admin")
        return [User(**row) for row in await self._store.list_users(role=role)]

    async def list_pms(self) -> list[User]:
        return [User(**row) for row in await self._store.list_users(role="pm", active_only=True)]

    async def exec_recipients(self) -> list[User]:
        rows = await self._store.list_users(role="exec", active_only=True)
        return [User(**row) for row in rows]

    # --- Projects ---

    async def create_project(
        self,
        caller: Caller,
        *,
        name: str,
        client: str,
        contract_type: str = "T & Material",
        pm_id: str | None = None,
    ) -> Project:
        """Create an active project.

        Raises:
            AccessDenied: If the caller is not an admin
            ValidationFailed: If a field is invalid
            NotFound: If ``pm_id`` does not reference a PM
        """
        require_role(caller, "admin")
        if pm_id:
            await self._require_pm(pm_id)
        try:
            project = Project(
                name=_require_text(name, "Project name"),
                client=_require_text(client, "Client"),
                contract_type=contract_type,
                pm_id=pm_id,
            )
        except ValidationError as e:
            raise ValidationFailed(
                f"Invalid contract type: {contract_type}. "
                f"Must be one of {sorted(VALID_CONTRACT_TYPES)}"
            ) from e

        await self._store.insert_project(project.to_storage())
        logger.info("Created project: %s (id=%s)", project.name, project.id)
        await self._event_bus.emit(
            EventType.PROJECT_CREATED, {"project_id": project.id, "name": project.name}
        )
        return project

    async def get_project(self, project_id: str) -> Project | None:
        data = await self._store.get_project(project_id)
        return Project(**data) if data else None

    async def update_project(self, caller: Caller, project_id: str, **updates: Any) -> Project:
        """Edit a project. Closing stamps ``closed_at``; reopening clears it."""
        require_role(caller, "admin")
        updates = {k: v for k, v in updates.items() if k in _PROJECT_FIELDS}

        if "status" in updates:
            status = updates["status"]
            if status not in VALID_STATUSES:
                raise ValidationFailed(f"Invalid status: {status}")
            updates["closed_at"] = _now() if status == "closed" else None
        if "contract_type" in updates and updates["contract_type"] not in VALID_CONTRACT_TYPES:
            raise ValidationFailed(f"Invalid contract type: {updates['contract_type']}")
        for key, label in (("name", "Project name"), ("client", "Client")):
            if key in updates:
                updates[key] = _require_text(updates[key], label)
        if updates.get("pm_id"):
            await self._require_pm(updates["pm_id"])

        updates["updated_at"] = _now()
        data = await self._store.update_project(project_id, updates)
        if data is None:
            raise NotFound(f"Project not found: {project_id}")

        logger.info("Updated project %s: %s", project_id, sorted(updates))
        await self._event_bus.emit(
            EventType.PROJECT_UPDATED, {"project_id": project_id, "fields": sorted(updates)}
        )
        return Project(**data)

    async def delete_project(self, caller: Caller, project_id: str) -> None:
        """Hard-delete a project with its reports. Closing is the normal path."""
        require_role(caller, "admin")
        if not await self._store.delete_project(project_id):
            raise NotFound(f"Project not found: {project_id}")
        logger.info("Deleted project %s", project_id)
        await self._event_bus.emit(EventType.PROJECT_DELETED, {"project_id": project_id})

    async def list_projects(self, caller: Caller) -> list[Project]:
        """admin: all projects; pm: own active projects; exec: active projects."""
        if caller.role == "admin":
            rows = await self._store.list_projects()
        elif caller.role == "pm":
            rows = await self._store.list_projects(status="active", pm_id=caller.id)
        else:
            rows = await self._store.list_projects(status="active")
        return [Project(**row) for row in rows]

    async def active_projects(self) -> list[Project]:
        return [Project(**row) for row in await self._store.list_projects(status="active")]

    async def _require_pm(self, user_id: str) -> None:
        user = await self._store.get_user(user_id)
        if user is None or user["role"] != "pm":
            raise NotFound(f"PM not found: {user_id}")
