"""MCP server exposing Google Tasks operations as tools."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from gtasks_mcp.config import ServerConfig
from gtasks_mcp.google import GoogleAuthorizer
from gtasks_mcp.google.exceptions import GoogleAuthError
from gtasks_mcp.tasks import OperationResult, TasksClient

logger = logging.getLogger(__name__)

SERVER_NAME = "google-tasks"

TaskListId = Annotated[str, Field(description="ID of the task list")]
TaskId = Annotated[str, Field(description="ID of the task")]


def _unwrap(result: OperationResult) -> str:
    if result.is_error:
        raise ToolError(result.text)
    return result.text


def create_server(
    config: ServerConfig,
    authorizer: GoogleAuthorizer | None = None,
) -> FastMCP:
    """Build the MCP server with one tool per Google Tasks operation.

    Args:
        config: Runtime configuration.
        authorizer: Authorizer shared by all tools. Built from ``config`` if omitted.

    Returns:
        A FastMCP server ready to ``run()``.
    """
    authorizer = authorizer or GoogleAuthorizer(config)
    tasks = TasksClient(authorizer, max_results=config.max_results)

    mcp = FastMCP(
        SERVER_NAME,
        instructions="Manage Google Tasks task lists and tasks for the authorized user.",
    )

    # -- task lists ----------------------------------------------------------

    @mcp.tool(name="list-task-lists", description="List all task lists in Google Tasks")
    def list_task_lists() -> str:
        return _unwrap(tasks.list_task_lists())

    @mcp.tool(name="create-task-list", description="Create a new task list in Google Tasks")
    def create_task_list(
        title: Annotated[str, Field(description="Title of the new task list")],
    ) -> str:
        return _unwrap(tasks.create_task_list(title))

    @mcp.tool(name="update-task-list", description="Update an existing task list in Google Tasks")
    def update_task_list(
        task_list_id: Annotated[str, Field(description="ID of the task list to update")],
        title: Annotated[str, Field(description="New title for the task list")],
    ) -> str:
        return _unwrap(tasks.update_task_list(task_list_id, title))

    @mcp.tool(name="delete-task-list", description="Delete a task list in Google Tasks")
    def delete_task_list(
        task_list_id: Annotated[str, Field(description="ID of the task list to delete")],
    ) -> str:
        return _unwrap(tasks.delete_task_list(task_list_id))

    # -- tasks ---------------------------------------------------------------

    @mcp.tool(name="list-tasks", description="List tasks in a specific task list")
    def list_tasks(task_list_id: TaskListId) -> str:
        return _unwrap(tasks.list_tasks(task_list_id))

    @mcp.tool(
        name="search-tasks",
        description="Search a task list for tasks whose title or notes contain the query",
    )
    def search_tasks(
        task_list_id: TaskListId,
        query: Annotated[str, Field(description="Text to look for (case-insensitive)")],
    ) -> str:
        return _unwrap(tasks.search_tasks(task_list_id, query))

    @mcp.tool(name="create-task", description="Create a new task in a specific task list")
    def create_task(
        task_list_id: Annotated[
            str, Field(description="ID of the task list to create the task in")
        ],
        title: Annotated[str, Field(description="Title of the new task")],
        notes: Annotated[str | None, Field(description="Notes for the new task")] = None,
        due: Annotated[
            str | None, Field(description="Due date in ISO format (YYYY-MM-DD)")
        ] = None,
        status: Annotated[
            str, Field(description="Status of the new task (needsAction or completed)")
        ] = "needsAction",
        parent: Annotated[
            str | None, Field(description="ID of the parent task if this is a subtask")
        ] = None,
    ) -> str:
        return _unwrap(
            tasks.create_task(
                task_list_id, title, notes=notes, due=due, status=status, parent=parent
            )
        )

    @mcp.tool(name="get-task", description="Get details of a specific task from a task list")
    def get_task(task_list_id: TaskListId, task_id: TaskId) -> str:
        return _unwrap(tasks.get_task(task_list_id, task_id))

    @mcp.tool(name="update-task", description="Update an existing task in a specific task list")
    def update_task(
        task_list_id: TaskListId,
        task_id: Annotated[str, Field(description="ID of the task to update")],
        title: Annotated[str | None, Field(description="New title for the task")] = None,
        notes: Annotated[str | None, Field(description="New notes for the task")] = None,
        due: Annotated[
            str | None, Field(description="New due date in ISO format (YYYY-MM-DD)")
        ] = None,
    ) -> str:
        return _unwrap(tasks.update_task(task_list_id, task_id, title=title, notes=notes, due=due))

    @mcp.tool(name="delete-task", description="Delete a task from a specific task list")
    def delete_task(
        task_list_id: TaskListId,
        task_id: Annotated[str, Field(description="ID of the task to delete")],
    ) -> str:
        return _unwrap(tasks.delete_task(task_list_id, task_id))

    @mcp.tool(name="clear-tasks", description="Clear all tasks from a specific task list")
    def clear_tasks(
        task_list_id: Annotated[str, Field(description="ID of the task list to clear tasks from")],
    ) -> str:
        return _unwrap(tasks.clear_tasks(task_list_id))

    @mcp.tool(name="complete-task", description="Mark a task as completed in a specific task list")
    def complete_task(task_list_id: TaskListId, task_id: TaskId) -> str:
        return _unwrap(tasks.complete_task(task_list_id, task_id))

    @mcp.tool(name="reopen-task", description="Reopen a completed task in a specific task list")
    def reopen_task(task_list_id: TaskListId, task_id: TaskId) -> str:
        return _unwrap(tasks.reopen_task(task_list_id, task_id))

    return mcp


def serve(config: ServerConfig) -> int:
    """Authorize, then run the MCP server over stdio.

    Returns:
        Process exit status. 1 if authorization fails before serving.
    """
    authorizer = GoogleAuthorizer(config)
    try:
        authorizer.authorize()
    except GoogleAuthError as e:
        logger.critical(f"Fatal error during startup authorization: {e}")
        return 1

    server = create_server(config, authorizer)
    logger.info("Google Tasks MCP Server running on stdio")
    server.run()
    return 0
