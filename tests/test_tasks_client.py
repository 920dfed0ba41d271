"""Tests for the Google Tasks operations."""

from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from gtasks_mcp.google.exceptions import ConsentDeniedError, ProviderError, TokenError
from gtasks_mcp.tasks import OperationResult, TasksClient, to_rfc3339


@pytest.fixture
def service():
    return MagicMock(name="tasks-service")


@pytest.fixture
def authorizer(service):
    authorizer = MagicMock(name="authorizer")
    authorizer.authorize.return_value.build_service.return_value = service
    return authorizer


@pytest.fixture
def client(authorizer):
    return TasksClient(authorizer, max_results=100)


def http_error(status: int, message: str) -> HttpError:
    resp = MagicMock(status=status, reason="Error")
    content = f'{{"error": {{"code": {status}, "message": "{message}"}}}}'.encode()
    return HttpError(resp, content)


class TestToRfc3339:
    """Due dates are sent to the API as RFC 3339 timestamps."""

    def test_plain_date(self):
        assert to_rfc3339("2026-01-25") == "2026-01-25T00:00:00.000Z"

    def test_datetime_with_offset_converted_to_utc(self):
        assert to_rfc3339("2026-01-25T10:30:00+02:00") == "2026-01-25T08:30:00.000Z"

    def test_zulu_datetime(self):
        assert to_rfc3339("2026-01-25T10:30:00.250Z") == "2026-01-25T10:30:00.250Z"

    def test_invalid(self):
        with pytest.raises(ValueError):
            to_rfc3339("next tuesday")


class TestOperationContract:
    """Authorize once, one remote call, uniform results."""

    def test_authorizes_once_per_operation(self, client, authorizer, service):
        service.tasklists.return_value.list.return_value.execute.return_value = {"items": []}
        service.tasks.return_value.get.return_value.execute.return_value = {"id": "task-1"}

        assert not client.list_task_lists().is_error
        assert not client.get_task("list-1", "task-1").is_error
        assert authorizer.authorize.call_count == 2

    def test_auth_error_becomes_error_result_without_retry(self, client, authorizer, service):
        authorizer.authorize.side_effect = ConsentDeniedError()

        result = client.list_tasks("list-1")

        assert result.is_error
        assert result.text.startswith("Error listing tasks:")
        assert "declined" in result.text
        authorizer.authorize.assert_called_once()
        service.tasks.assert_not_called()

    def test_provider_error_becomes_error_result(self, client, authorizer):
        authorizer.authorize.side_effect = ProviderError("network unreachable")
        result = client.create_task_list("Groceries")
        assert result == OperationResult.failure("Error creating task list: network unreachable")

    def test_http_error_becomes_error_result(self, client, service):
        service.tasklists.return_value.list.return_value.execute.side_effect = http_error(
            404, "Task list not found"
        )

        result = client.list_task_lists()

        assert result.is_error
        assert result.text.startswith("Error listing task lists:")
        assert "404" in result.text

    def test_refresh_failure_during_call_becomes_error_result(self, client, service):
        service.tasks.return_value.get.return_value.execute.side_effect = TokenError(
            "Failed to refresh token: invalid_grant"
        )
        result = client.get_task("list-1", "task-1")
        assert result.is_error
        assert "invalid_grant" in result.text

    def test_unrenderable_response_becomes_error_result(self, client, service):
        service.tasklists.return_value.list.return_value.execute.return_value = {
            "items": [object()]
        }

        result = client.list_task_lists()

        assert result.is_error
        assert result.text.startswith("Error listing task lists:")
        assert "not JSON serializable" in result.text

    def test_exactly_one_request_executed(self, client, service):
        request = service.tasks.return_value.delete.return_value
        client.delete_task("list-1", "task-1")
        request.execute.assert_called_once_with()


class TestTaskListOperations:
    def test_list_task_lists_uses_max_results(self, authorizer, service):
        service.tasklists.return_value.list.return_value.execute.return_value = {
            "items": [{"id": "list-1", "title": "Inbox"}]
        }
        client = TasksClient(authorizer, max_results=250)

        result = client.list_task_lists()

        service.tasklists.return_value.list.assert_called_once_with(maxResults=250)
        assert not result.is_error
        assert result.text.startswith("Task Lists:\n")
        assert '"title": "Inbox"' in result.text

    def test_list_task_lists_empty(self, client, service):
        service.tasklists.return_value.list.return_value.execute.return_value = {}
        assert client.list_task_lists().text == "Task Lists:\n[]"

    def test_create_task_list(self, client, service):
        service.tasklists.return_value.insert.return_value.execute.return_value = {
            "id": "list-2",
            "title": "Groceries",
        }
        result = client.create_task_list("Groceries")

        service.tasklists.return_value.insert.assert_called_once_with(body={"title": "Groceries"})
        assert result.text.startswith("Task List created successfully:")

    def test_update_task_list(self, client, service):
        service.tasklists.return_value.patch.return_value.execute.return_value = {
            "id": "list-2",
            "title": "Shopping",
        }
        result = client.update_task_list("list-2", "Shopping")

        assert result.text.startswith("Task List updated successfully:")
        service.tasklists.return_value.patch.assert_called_once_with(
            tasklist="list-2", body={"title": "Shopping"}
        )

    def test_delete_task_list(self, client, service):
        result = client.delete_task_list("list-2")
        service.tasklists.return_value.delete.assert_called_once_with(tasklist="list-2")
        assert result.text == "Task List with ID list-2 deleted successfully."


class TestTaskOperations:
    def test_list_tasks(self, client, service):
        service.tasks.return_value.list.return_value.execute.return_value = {
            "items": [{"id": "t1", "title": "Milk"}]
        }
        result = client.list_tasks("list-1")

        service.tasks.return_value.list.assert_called_once_with(tasklist="list-1", maxResults=100)
        assert result.text.startswith("Tasks in Task List ID list-1:\n")

    def test_search_tasks_matches_title_and_notes(self, client, service):
        service.tasks.return_value.list.return_value.execute.return_value = {
            "items": [
                {"id": "t1", "title": "Buy MILK"},
                {"id": "t2", "title": "Call mom", "notes": "about the milkshake"},
                {"id": "t3", "title": "Pay rent"},
                {"id": "t4"},
            ]
        }

        result = client.search_tasks("list-1", "milk")

        assert result.text.startswith('Search results for "milk":\n')
        assert '"t1"' in result.text
        assert '"t2"' in result.text
        assert '"t3"' not in result.text
        assert '"t4"' not in result.text

    def test_create_task(self, client, service):
        service.tasks.return_value.insert.return_value.execute.return_value = {"id": "t1"}
        result = client.create_task(
            "list-1", "Milk", notes="2 litres", due="2026-01-25", parent="parent-1"
        )

        service.tasks.return_value.insert.assert_called_once_with(
            tasklist="list-1",
            body={
                "title": "Milk",
                "status": "needsAction",
                "notes": "2 litres",
                "due": "2026-01-25T00:00:00.000Z",
            },
            parent="parent-1",
        )
        assert result.text.startswith("Task created successfully:")

    def test_create_task_minimal(self, client, service):
        service.tasks.return_value.insert.return_value.execute.return_value = {"id": "t1"}
        assert not client.create_task("list-1", "Milk").is_error
        service.tasks.return_value.insert.assert_called_once_with(
            tasklist="list-1", body={"title": "Milk", "status": "needsAction"}
        )

    def test_create_task_with_bad_due_date_skips_remote_call(self, client, authorizer, service):
        result = client.create_task("list-1", "Milk", due="someday")

        assert result.is_error
        assert "invalid due date" in result.text
        authorizer.authorize.assert_not_called()
        service.tasks.assert_not_called()

    def test_get_task(self, client, service):
        service.tasks.return_value.get.return_value.execute.return_value = {"id": "t1"}
        result = client.get_task("list-1", "t1")
        service.tasks.return_value.get.assert_called_once_with(tasklist="list-1", task="t1")
        assert result.text.startswith("Task details:\n")

    def test_update_task_sends_only_given_fields(self, client, service):
        service.tasks.return_value.patch.return_value.execute.return_value = {"id": "t1"}
        result = client.update_task("list-1", "t1", title="Oat milk", due="2026-02-01")

        assert result.text.startswith("Task updated successfully:")
        service.tasks.return_value.patch.assert_called_once_with(
            tasklist="list-1",
            task="t1",
            body={"title": "Oat milk", "due": "2026-02-01T00:00:00.000Z"},
        )

    def test_update_task_without_fields(self, client, authorizer):
        result = client.update_task("list-1", "t1")
        assert result.is_error
        authorizer.authorize.assert_not_called()

    def test_delete_task(self, client, service):
        result = client.delete_task("list-1", "t1")
        service.tasks.return_value.delete.assert_called_once_with(tasklist="list-1", task="t1")
        assert result.text == "Task with ID t1 deleted successfully from Task List ID list-1."

    def test_clear_tasks(self, client, service):
        result = client.clear_tasks("list-1")
        service.tasks.return_value.clear.assert_called_once_with(tasklist="list-1")
        assert result.text == "All tasks cleared successfully from Task List ID list-1."

    def test_complete_task(self, client, service):
        result = client.complete_task("list-1", "t1")
        service.tasks.return_value.patch.assert_called_once_with(
            tasklist="list-1", task="t1", body={"status": "completed"}
        )
        assert result.text == "Task with ID t1 marked as completed."

    def test_reopen_task(self, client, service):
        result = client.reopen_task("list-1", "t1")
        service.tasks.return_value.patch.assert_called_once_with(
            tasklist="list-1", task="t1", body={"status": "needsAction", "completed": None}
        )
        assert result.text == "Task with ID t1 reopened successfully."
