"""Book Instance MCP Resources Package

Read-only views over book instances:

- library://instances/list
- library://instances/status/{status}
- library://instances/{instance_id}
- library://patrons/{user_id}/instances
"""

from .instances import instance_resources

all_resources = list(instance_resources)

__all__ = [
    "all_resources",
    "instance_resources",
]
