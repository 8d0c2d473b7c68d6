"""
Task tools.

Registers the project task tools exposed to MCP clients. The tools receive their `TaskStore`
explicitly through `task_tools()`; nothing here reaches for process-wide state.

Return Types:
    - All tools return structured dict objects and never raise to the MCP layer.
    - On success, 'success': True. On error, 'success': False, 'error': str and 'isError': True.
"""

import logging
from typing import Annotated

from pydantic import Field

from context_forge_mcp._exceptions import TaskStoreError
from context_forge_mcp.db import TaskStore

from ._registration import ToolRegistrar, ToolRegistration

_LOGGER = logging.getLogger(__name__)


def task_tools(task_store: TaskStore) -> ToolRegistration:
    """
    Build the registration function for the task tools bound to *task_store*.

    Args:
        task_store (TaskStore): The opened store the tools read from.

    Returns:
        ToolRegistration: Registers ``get_tasks_by_project_id`` on a registrar.
    """

    # Argument names are the wire schema; clients send ``projectId``.
    async def get_tasks_by_project_id(
        projectId: Annotated[
            str, Field(description="The ID of the project to get tasks for")
        ],
    ) -> dict:
        """
        Get all tasks of a project, ordered by their position in the project.

        Returns:
            dict: {'success': True, 'projectId': str, 'tasks': list[dict]} on success, where each
                task has id, projectId, title, description, status, order, createdAt and updatedAt.
                {'success': False, 'error': str, 'isError': True} on failure.
        """
        try:
            tasks = await task_store.get_tasks_by_project_id(projectId)
        except TaskStoreError as e:
            _LOGGER.error(
                f"[tools:get_tasks_by_project_id] Failed to load tasks for project '{projectId}': {e}"
            )
            return {"success": False, "error": str(e), "isError": True}

        _LOGGER.debug(
            f"[tools:get_tasks_by_project_id] Project '{projectId}' has {len(tasks)} task(s)"
        )
        return {"success": True, "projectId": projectId, "tasks": tasks}

    def register(registrar: ToolRegistrar) -> None:
        registrar.add_tool(
            get_tasks_by_project_id,
            name="get_tasks_by_project_id",
            title="Get Tasks by Project ID",
            description="Get all tasks by project id",
        )

    return register
