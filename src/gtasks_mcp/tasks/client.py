"""Google Tasks operations.

Every operation follows the same contract:

1. ask the authorizer for a client (once, no retry on failure),
2. issue exactly one Tasks API request,
3. turn the outcome into an :class:`OperationResult`.

Operations never raise; remote and authorization failures come back as
error results carrying the failure message.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from googleapiclient.errors import HttpError

from gtasks_mcp.config import DEFAULT_MAX_RESULTS
from gtasks_mcp.google import GoogleAuthorizer
from gtasks_mcp.google.exceptions import GoogleAuthError

logger = logging.getLogger(__name__)

STATUS_NEEDS_ACTION = "needsAction"
STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class OperationResult:
    """Uniform outcome of a tasks operation."""

    text: str
    is_error: bool = False

    @classmethod
    def success(cls, text: str) -> OperationResult:
        return cls(text=text)

    @classmethod
    def failure(cls, text: str) -> OperationResult:
        return cls(text=text, is_error=True)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _error_message(error: Exception) -> str:
    if isinstance(error, HttpError):
        reason = getattr(error, "reason", None) or "request failed"
        return f"{reason} (HTTP {error.resp.status})"
    return str(error) or error.__class__.__name__


def to_rfc3339(due: str | date) -> str:
    """Convert a due date to the RFC 3339 timestamp the Tasks API expects.

    ``YYYY-MM-DD`` becomes midnight UTC. Full ISO 8601 datetimes are converted
    to UTC; naive ones are taken as UTC.

    Raises:
        ValueError: If ``due`` is not an ISO 8601 date or datetime.
    """
    if isinstance(due, datetime):
        dt = due
    elif isinstance(due, date):
        return f"{due.isoformat()}T00:00:00.000Z"
    else:
        text = due.strip()
        try:
            return f"{date.fromisoformat(text).isoformat()}T00:00:00.000Z"
        except ValueError:
            pass
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


class TasksClient:
    """Google Tasks API operations on behalf of the authorized user.

    Usage:
        client = TasksClient(GoogleAuthorizer(config), max_results=config.max_results)

        # List task lists
        result = client.list_task_lists()

        # Create a task
        result = client.create_task("@default", title="Do something")

        # Complete a task
        client.complete_task("@default", task_id)

    Each method returns an OperationResult whose text is the JSON payload
    (or a confirmation) on success and the error message on failure.
    """

    def __init__(
        self,
        authorizer: GoogleAuthorizer,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self._authorizer = authorizer
        self.max_results = max_results

    def _execute(
        self,
        action: str,
        request: Callable[[Any], Any],
        render: Callable[[Any], str],
    ) -> OperationResult:
        """Authorize, run one API request and render its response."""
        try:
            client = self._authorizer.authorize()
        except GoogleAuthError as e:
            logger.error(f"Authorization failed while {action}: {e}")
            return OperationResult.failure(f"Error {action}: {e}")

        try:
            service = client.build_service()
            response = request(service).execute()
            text = render(response)
        except Exception as e:
            logger.exception(f"Error {action}")
            return OperationResult.failure(f"Error {action}: {_error_message(e)}")

        return OperationResult.success(text)

    # =========================================================================
    # Task Lists
    # =========================================================================

    def list_task_lists(self) -> OperationResult:
        """List all task lists, up to ``max_results``."""
        return self._execute(
            "listing task lists",
            lambda service: service.tasklists().list(maxResults=self.max_results),
            lambda response: f"Task Lists:\n{_dump(response.get('items', []))}",
        )

    def create_task_list(self, title: str) -> OperationResult:
        """Create a new task list.

        Args:
            title: Name of the new task list.
        """
        return self._execute(
            "creating task list",
            lambda service: service.tasklists().insert(body={"title": title}),
            lambda response: f"Task List created successfully:\n{_dump(response)}",
        )

    def update_task_list(self, task_list_id: str, title: str) -> OperationResult:
        """Rename a task list."""
        return self._execute(
            "updating task list",
            lambda service: service.tasklists().patch(
                tasklist=task_list_id, body={"title": title}
            ),
            lambda response: f"Task List updated successfully:\n{_dump(response)}",
        )

    def delete_task_list(self, task_list_id: str) -> OperationResult:
        """Delete a task list."""
        return self._execute(
            "deleting task list",
            lambda service: service.tasklists().delete(tasklist=task_list_id),
            lambda _: f"Task List with ID {task_list_id} deleted successfully.",
        )

    # =========================================================================
    # Tasks
    # =========================================================================

    def list_tasks(self, task_list_id: str) -> OperationResult:
        """List tasks in a task list, up to ``max_results``."""
        return self._execute(
            "listing tasks",
            lambda service: service.tasks().list(
                tasklist=task_list_id, maxResults=self.max_results
            ),
            lambda response: (
                f"Tasks in Task List ID {task_list_id}:\n{_dump(response.get('items', []))}"
            ),
        )

    def search_tasks(self, task_list_id: str, query: str) -> OperationResult:
        """Find tasks whose title or notes contain ``query`` (case-insensitive).

        Only the first ``max_results`` tasks of the list are searched.
        """
        needle = query.lower()

        def render(response: dict) -> str:
            matches = [
                task
                for task in response.get("items", [])
                if needle in (task.get("title") or "").lower()
                or needle in (task.get("notes") or "").lower()
            ]
            return f'Search results for "{query}":\n{_dump(matches)}'

        return self._execute(
            "searching tasks",
            lambda service: service.tasks().list(
                tasklist=task_list_id, maxResults=self.max_results
            ),
            render,
        )

    def create_task(
        self,
        task_list_id: str,
        title: str,
        notes: str | None = None,
        due: str | date | None = None,
        status: str | None = None,
        parent: str | None = None,
    ) -> OperationResult:
        """Create a new task.

        Args:
            task_list_id: Task list ID or "@default" for primary list.
            title: Task title.
            notes: Task notes/description.
            due: Due date as "YYYY-MM-DD" or an ISO 8601 datetime.
            status: "needsAction" (default) or "completed".
            parent: Parent task ID for subtasks.
        """
        body: dict[str, Any] = {"title": title, "status": status or STATUS_NEEDS_ACTION}
        if notes is not None:
            body["notes"] = notes
        if due:
            try:
                body["due"] = to_rfc3339(due)
            except ValueError:
                return OperationResult.failure(
                    f"Error creating task: invalid due date {due!r}, expected YYYY-MM-DD"
                )

        kwargs: dict[str, Any] = {"tasklist": task_list_id, "body": body}
        if parent:
            kwargs["parent"] = parent

        return self._execute(
            "creating task",
            lambda service: service.tasks().insert(**kwargs),
            lambda response: f"Task created successfully:\n{_dump(response)}",
        )

    def get_task(self, task_list_id: str, task_id: str) -> OperationResult:
        """Get a specific task."""
        return self._execute(
            "retrieving task",
            lambda service: service.tasks().get(tasklist=task_list_id, task=task_id),
            lambda response: f"Task details:\n{_dump(response)}",
        )

    def update_task(
        self,
        task_list_id: str,
        task_id: str,
        title: str | None = None,
        notes: str | None = None,
        due: str | date | None = None,
    ) -> OperationResult:
        """Update the given fields of a task; fields left as None are unchanged."""
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if notes is not None:
            body["notes"] = notes
        if due:
            try:
                body["due"] = to_rfc3339(due)
            except ValueError:
                return OperationResult.failure(
                    f"Error updating task: invalid due date {due!r}, expected YYYY-MM-DD"
                )

        if not body:
            return OperationResult.failure("Error updating task: no fields to update")

        return self._execute(
            "updating task",
            lambda service: service.tasks().patch(
                tasklist=task_list_id, task=task_id, body=body
            ),
            lambda response: f"Task updated successfully:\n{_dump(response)}",
        )

    def delete_task(self, task_list_id: str, task_id: str) -> OperationResult:
        """Delete a task."""
        return self._execute(
            "deleting task",
            lambda service: service.tasks().delete(tasklist=task_list_id, task=task_id),
            lambda _: (
                f"Task with ID {task_id} deleted successfully from Task List ID {task_list_id}."
            ),
        )

    def clear_tasks(self, task_list_id: str) -> OperationResult:
        """Clear all tasks from a list.

        Google only clears completed tasks; it hides them from the default list
        view instead of deleting them.
        """
        return self._execute(
            "clearing tasks",
            lambda service: service.tasks().clear(tasklist=task_list_id),
            lambda _: f"All tasks cleared successfully from Task List ID {task_list_id}.",
        )

    def complete_task(self, task_list_id: str, task_id: str) -> OperationResult:
        """Mark a task as completed."""
        return self._execute(
            "completing task",
            lambda service: service.tasks().patch(
                tasklist=task_list_id, task=task_id, body={"status": STATUS_COMPLETED}
            ),
            lambda _: f"Task with ID {task_id} marked as completed.",
        )

    def reopen_task(self, task_list_id: str, task_id: str) -> OperationResult:
        """Mark a completed task as needing action again."""
        return self._execute(
            "reopening task",
            lambda service: service.tasks().patch(
                tasklist=task_list_id,
                task=task_id,
                body={"status": STATUS_NEEDS_ACTION, "completed": None},
            ),
            lambda _: f"Task with ID {task_id} reopened successfully.",
        )
