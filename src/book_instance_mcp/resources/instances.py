"""Book Instance Resources - Collection Access

Exposes book instances via read-only resources. Clients use these to
browse copies, see which are on the shelf and look up what a reader holds.

Resources:
- library://instances/list - First page of all copies
- library://instances/list/{page} - A later page of all copies
- library://instances/status/{status} - Copies in one status (A, L, R or M)
- library://instances/status/{status}/{page} - A later page of one status
- library://instances/{instance_id} - Details of one copy
- library://patrons/{user_id}/instances - Copies a reader has loaned or reserved

Every read runs the reservation sweep first, so lapsed holds are shown as
Available rather than Reserved.
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError
from pydantic import BaseModel, Field

from ..database.session import get_session
from ..lifecycle.errors import BadRequestError, LifecycleError
from ..lifecycle.services import build_services
from ..models.instance import BookInstanceDetails

logger = logging.getLogger(__name__)


class InstanceListResponse(BaseModel):
    """Response schema with instances and pagination metadata."""

    instances: list[BookInstanceDetails] = Field(..., description="Instances in this page")
    total: int = Field(..., description="Total number of instances matching filters")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Number of items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there's a next page")
    has_previous: bool = Field(..., description="Whether there's a previous page")


def _parse_page(page: str | int) -> int:
    try:
        return int(page)
    except (TypeError, ValueError) as e:
        raise BadRequestError(f"Page must be a positive integer, got {page!r}") from e


def _list_response(status: str | None = None, page: str | int = 1) -> dict[str, Any]:
    catalog = build_services(get_session).catalog
    result = catalog.list_instances(page=_parse_page(page), status=status)
    return InstanceListResponse(
        instances=result.items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_previous=result.has_previous,
    ).model_dump(mode="json")


async def list_instances_handler() -> dict[str, Any]:
    """Returns the first page of book instances."""
    return await list_instances_page_handler(1)


async def list_instances_page_handler(page: str | int) -> dict[str, Any]:
    """Returns one page of book instances.

    Client requests library://instances/list/2 for copies 11-20.
    """
    try:
        logger.debug("MCP Resource Request - instances/list/%s", page)
        return _list_response(page=page)
    except LifecycleError as e:
        raise ResourceError(f"Failed to retrieve instance list: {e.message}") from e
    except Exception as e:
        logger.exception("Error in instances/list resource")
        raise ResourceError(f"Failed to retrieve instance list: {e!s}") from e


async def list_instances_by_status_handler(status: str) -> dict[str, Any]:
    """Returns the first page of book instances in one status.

    Client requests library://instances/status/A to see what is on the shelf.
    """
    return await list_instances_by_status_page_handler(status, 1)


async def list_instances_by_status_page_handler(status: str, page: str | int) -> dict[str, Any]:
    """Returns one page of book instances in one status."""
    try:
        logger.debug("MCP Resource Request - instances/status/%s/%s", status, page)
        return _list_response(status, page)
    except LifecycleError as e:
        raise ResourceError(f"Failed to list instances with status '{status}': {e.message}") from e
    except Exception as e:
        logger.exception("Error in instances/status/{status} resource")
        raise ResourceError(f"Failed to list instances with status '{status}': {e!s}") from e


async def get_instance_handler(instance_id: str) -> dict[str, Any]:
    """Returns details for a specific book instance, including its book title."""
    try:
        logger.debug("MCP Resource Request - instances/%s", instance_id)
        catalog = build_services(get_session).catalog
        return catalog.get_instance(instance_id).model_dump(mode="json")
    except LifecycleError as e:
        raise ResourceError(e.message) from e
    except Exception as e:
        logger.exception("Error in instances/{instance_id} resource")
        raise ResourceError(f"Failed to retrieve book instance: {e!s}") from e


async def get_patron_instances_handler(user_id: str) -> dict[str, Any]:
    """Returns the copies a reader currently has on loan or on reservation."""
    try:
        logger.debug("MCP Resource Request - patrons/%s/instances", user_id)
        catalog = build_services(get_session).catalog
        held = catalog.list_held_by(user_id)
        return {
            "user_id": user_id,
            "instances": [instance.model_dump(mode="json") for instance in held],
            "total": len(held),
        }
    except LifecycleError as e:
        raise ResourceError(e.message) from e
    except Exception as e:
        logger.exception("Error in patrons/{user_id}/instances resource")
        raise ResourceError(f"Failed to retrieve instances held by {user_id}: {e!s}") from e


instance_resources: list[dict[str, Any]] = [
    {
        "uri": "library://instances/list",
        "name": "Book Instances",
        "description": "Browse the library's physical copies with their status and holder.",
        "mime_type": "application/json",
        "handler": list_instances_handler,
    },
    {
        "uri_template": "library://instances/list/{page}",
        "name": "Book Instances (Page)",
        "description": "One page of the library's physical copies, starting at page 1",
        "mime_type": "application/json",
        "handler": list_instances_page_handler,
    },
    {
        "uri_template": "library://instances/status/{status}",
        "name": "Book Instances by Status",
        "description": (
            "Copies in one status: A (available), L (loaned), R (reserved) or M (maintenance)"
        ),
        "mime_type": "application/json",
        "handler": list_instances_by_status_handler,
    },
    {
        "uri_template": "library://instances/status/{status}/{page}",
        "name": "Book Instances by Status (Page)",
        "description": "One page of the copies in one status",
        "mime_type": "application/json",
        "handler": list_instances_by_status_page_handler,
    },
    {
        "uri_template": "library://instances/{instance_id}",
        "name": "Book Instance Details",
        "description": "Get a copy's book, imprint, status, holder and due date",
        "mime_type": "application/json",
        "handler": get_instance_handler,
    },
    {
        "uri_template": "library://patrons/{user_id}/instances",
        "name": "Reader's Book Instances",
        "description": "Copies a reader has on loan or on reservation",
        "mime_type": "application/json",
        "handler": get_patron_instances_handler,
    },
]
