"""
Policy repository for the Book Instance MCP Server.

Policies are read-only to the lifecycle core. Every read goes to the
database so a librarian's change applies to the very next transition.
"""

import logging

from sqlalchemy import select

from ..database.schema import LibraryPolicy as PolicyDB
from ..database.session import mcp_safe_commit, mcp_safe_query
from ..models.policy import LibraryPolicy as PolicyModel
from .repository import BaseRepository, NotFoundError

logger = logging.getLogger(__name__)


class PolicyRepository(BaseRepository[PolicyDB, PolicyModel]):
    """Read access to library policies, plus the admin write used for seeding."""

    @property
    def model_class(self):
        return PolicyDB

    @property
    def response_schema(self):
        return PolicyModel

    def get_policy_value(self, name: str) -> int:
        """
        Return the numeric value of a policy.

        Raises:
            NotFoundError: If the policy has never been configured
            StorageError: On database errors
        """
        value = mcp_safe_query(
            self.session,
            lambda s: s.execute(select(PolicyDB.value).where(PolicyDB.name == name)).scalar(),
            f"Failed to read policy {name}",
        )
        if value is None:
            raise NotFoundError(f"Library policy {name} is not configured")
        return int(value)

    def set_policy_value(self, name: str, value: int, description: str | None = None) -> PolicyModel:
        """Create or replace a policy value."""
        db_obj = self._get_db_object(name)
        if db_obj is None:
            db_obj = PolicyDB(name=name, value=value, description=description)
            self.session.add(db_obj)
        else:
            db_obj.value = value
            if description is not None:
                db_obj.description = description

        mcp_safe_commit(self.session, f"set policy {name}")
        logger.info("Policy %s set to %s", name, value)
        return self._to_response_model(db_obj)
