"""Google Tasks operations with OAuth authorization.

Usage:
    from gtasks_mcp.config import ServerConfig
    from gtasks_mcp.google import GoogleAuthorizer
    from gtasks_mcp.tasks import TasksClient

    config = ServerConfig.from_env()
    client = TasksClient(GoogleAuthorizer(config), max_results=config.max_results)

    # List task lists
    result = client.list_task_lists()
    print(result.text)

    # Create a task in the default list
    client.create_task("@default", title="Review PR", due="2026-01-25")

OAuth Setup:
    1. Download OAuth credentials from Google Cloud Console
    2. Import: gtasks-mcp import ~/Downloads/credentials.json
    3. Authorize: gtasks-mcp login
"""

from __future__ import annotations

from gtasks_mcp.tasks.client import OperationResult, TasksClient, to_rfc3339

__all__ = ["TasksClient", "OperationResult", "to_rfc3339"]
