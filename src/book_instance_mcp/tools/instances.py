"""
Book instance tools for the Book Instance MCP Server.

These MCP tools are the request layer in front of the lifecycle core:
1. update_instance_status: move a copy between A / L / R / M
2. create_book_instance: provision a new Available copy
3. update_book_instance: change a copy's book or imprint
4. delete_book_instance: remove a copy nobody holds

Each handler validates its arguments with a Pydantic schema, checks the
caller's role, calls the core, and renders the outcome. Core errors map
to status codes here and nowhere else:

    NotFound -> 404, BadRequest -> 400, Forbidden -> 403,
    Conflict -> 409, DependencyFailure / unexpected -> 500
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..database.session import get_session
from ..lifecycle.errors import ForbiddenError, LifecycleError
from ..lifecycle.services import build_services
from ..models.instance import InstanceStatus

logger = logging.getLogger(__name__)

STAFF_ROLES = frozenset({"super_admin", "librarian"})


# =============================================================================
# RESPONSE HELPERS
# =============================================================================


def _success(message: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": message}],
        "data": data,
    }


def _error(message: str, kind: str, status_code: int) -> dict[str, Any]:
    return {
        "isError": True,
        "errorKind": kind,
        "statusCode": status_code,
        "content": [{"type": "text", "text": message}],
    }


def error_response(error: LifecycleError) -> dict[str, Any]:
    """Render a lifecycle error as an MCP tool error."""
    return _error(error.message, error.kind, error.status_code)


def _invalid_input(tool: str, error: ValidationError) -> dict[str, Any]:
    logger.warning("Invalid %s parameters: %s", tool, error)
    return _error(f"Invalid {tool} parameters: {error}", "BadRequest", 400)


def _require_staff(role: str) -> None:
    if role not in STAFF_ROLES:
        raise ForbiddenError(f"Role '{role}' may not modify book instances")


class StaffRequest(BaseModel):
    """Fields every write tool carries; identity is established upstream."""

    caller_role: str = Field(
        ...,
        description="Role of the authenticated caller",
        examples=["librarian", "super_admin", "user"],
    )

    @field_validator("caller_role")
    @classmethod
    def normalize_role(cls, v: str) -> str:
        return v.strip().lower()


# =============================================================================
# UPDATE STATUS TOOL
# =============================================================================


class UpdateInstanceStatusInput(StaffRequest):
    """Input schema for the update_instance_status tool."""

    instance_id: str = Field(
        ...,
        description="Identifier of the book instance",
        min_length=1,
        max_length=36,
    )

    status: str = Field(
        ...,
        description="Target status code: A (available), L (loaned), R (reserved), M (maintenance)",
        examples=["A", "L", "M"],
    )

    user_id: str | None = Field(
        default=None,
        description="Reader taking the loan. Required for L; must be the holder for a reserved copy",
        max_length=50,
    )


async def update_instance_status_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the update_instance_status tool.

    A returned copy can go to Available or straight to Maintenance; the
    librarian decides. An invalid status code is a BadRequest reported
    by the core, not a schema error, so the message names the bad code.
    """
    try:
        params = UpdateInstanceStatusInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_input("update_instance_status", e)

    try:
        _require_staff(params.caller_role)
        services = build_services(get_session)
        outcome = services.engine.request_transition(
            params.instance_id, params.status, params.user_id
        )
    except LifecycleError as e:
        logger.info("Status update of %s rejected: %s (%s)", params.instance_id, e, e.kind)
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in update_instance_status tool")
        return _error(f"An unexpected error occurred: {e!s}", "InternalError", 500)

    return _success(
        outcome.message,
        {
            "instance": {
                "instance_id": outcome.instance_id,
                "book_id": outcome.book_id,
                "previous_status": outcome.previous_status.value,
                "status": outcome.status.value,
                "user_id": outcome.user_id,
                "available_by": outcome.available_by.isoformat() if outcome.available_by else None,
            }
        },
    )


# =============================================================================
# CREATE TOOL
# =============================================================================


class CreateBookInstanceInput(StaffRequest):
    """Input schema for the create_book_instance tool."""

    book_id: str = Field(
        ...,
        description="Catalog book this copy belongs to",
        min_length=1,
        max_length=50,
    )

    imprint: str = Field(
        default="",
        description="Publisher imprint and edition details",
        max_length=1000,
        examples=["Penguin Classics, 2003"],
    )


async def create_book_instance_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the create_book_instance tool."""
    try:
        params = CreateBookInstanceInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_input("create_book_instance", e)

    try:
        _require_staff(params.caller_role)
        services = build_services(get_session)
        instance_id = services.provisioner.provision(params.book_id, params.imprint)
    except LifecycleError as e:
        logger.info("Provisioning for book %s rejected: %s", params.book_id, e)
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in create_book_instance tool")
        return _error(f"An unexpected error occurred: {e!s}", "InternalError", 500)

    return _success(
        "Book Instance Created Successfully",
        {
            "instance": {
                "instance_id": instance_id,
                "book_id": params.book_id,
                "imprint": params.imprint,
                "status": InstanceStatus.AVAILABLE.value,
            }
        },
    )


# =============================================================================
# UPDATE DETAILS TOOL
# =============================================================================


class UpdateBookInstanceInput(StaffRequest):
    """Input schema for the update_book_instance tool."""

    instance_id: str = Field(..., min_length=1, max_length=36)
    book_id: str | None = Field(default=None, min_length=1, max_length=50)
    imprint: str | None = Field(default=None, max_length=1000)


async def update_book_instance_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the update_book_instance tool."""
    try:
        params = UpdateBookInstanceInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_input("update_book_instance", e)

    try:
        _require_staff(params.caller_role)
        services = build_services(get_session)
        instance = services.catalog.update_details(
            params.instance_id, book_id=params.book_id, imprint=params.imprint
        )
    except LifecycleError as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in update_book_instance tool")
        return _error(f"An unexpected error occurred: {e!s}", "InternalError", 500)

    return _success(
        "Book Instance Updated Successfully.",
        {"instance": instance.model_dump(mode="json")},
    )


# =============================================================================
# DELETE TOOL
# =============================================================================


class DeleteBookInstanceInput(StaffRequest):
    """Input schema for the delete_book_instance tool."""

    instance_id: str = Field(..., min_length=1, max_length=36)


async def delete_book_instance_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the delete_book_instance tool."""
    try:
        params = DeleteBookInstanceInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid_input("delete_book_instance", e)

    try:
        _require_staff(params.caller_role)
        services = build_services(get_session)
        services.catalog.delete_instance(params.instance_id)
    except LifecycleError as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in delete_book_instance tool")
        return _error(f"An unexpected error occurred: {e!s}", "InternalError", 500)

    return _success(
        "Book Instance Deleted Successfully",
        {"instance_id": params.instance_id},
    )


# =============================================================================
# TOOL DEFINITIONS
# =============================================================================

update_instance_status = {
    "name": "update_instance_status",
    "description": (
        "Change the status of a book instance. Reserved copies can be loaned to their "
        "holder or released; loaned copies can be returned to available or sent to "
        "maintenance; available copies can be loaned (reader required) or sent to "
        "maintenance; copies in maintenance can be made available. Loans are due after "
        "the library's MaxLoanDuration policy."
    ),
    "inputSchema": UpdateInstanceStatusInput.model_json_schema(),
    "handler": update_instance_status_handler,
}

create_book_instance = {
    "name": "create_book_instance",
    "description": "Add a new copy of a catalog book. New copies start available.",
    "inputSchema": CreateBookInstanceInput.model_json_schema(),
    "handler": create_book_instance_handler,
}

update_book_instance = {
    "name": "update_book_instance",
    "description": "Change the book or imprint of a copy without touching its status.",
    "inputSchema": UpdateBookInstanceInput.model_json_schema(),
    "handler": update_book_instance_handler,
}

delete_book_instance = {
    "name": "delete_book_instance",
    "description": "Remove a copy from the collection. Loaned or reserved copies cannot be removed.",
    "inputSchema": DeleteBookInstanceInput.model_json_schema(),
    "handler": delete_book_instance_handler,
}

instance_tools = [
    update_instance_status,
    create_book_instance,
    update_book_instance,
    delete_book_instance,
]
