"""
MCP Tools for the Book Instance Server.

Tools are the write side of the server: they change the status of copies,
add new copies and remove copies nobody holds. Reads go through resources.
Every tool takes the caller's role; only staff roles may write.
"""

from .instances import (
    create_book_instance,
    delete_book_instance,
    instance_tools,
    update_book_instance,
    update_instance_status,
)

# Export all tools for server registration
all_tools = list(instance_tools)

__all__ = [
    "all_tools",
    "create_book_instance",
    "delete_book_instance",
    "update_book_instance",
    "update_instance_status",
]
