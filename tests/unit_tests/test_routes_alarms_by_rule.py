"""Tests for the alarms-by-rule routes."""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from unittest.mock import patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from telemetry_api.alarms.models import Alarm
from telemetry_api.alarms.models import AlarmCountByRule
from telemetry_api.alarms.models import DeleteStatus
from telemetry_api.alarms.service import AlarmsService
from telemetry_api.alarms.task_runner import BackgroundTaskRunner
from telemetry_api.storage.errors import StorageError
from tests.consts import API_BASE


class TestDeleteAlarmsByRule:
    """Tests for POST /alarmsbyrule/delete/{rule_id}."""

    def test_returns_202_with_operation_id(self, client, mock_alarms_service):
        """Test the delete is accepted and the operation id is returned as text."""
        response = client.post(f"{API_BASE}/alarmsbyrule/delete/rule-1")

        assert response.status_code == 202
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.startswith("OperationId: ")
        operation_id = response.text[len("OperationId: ") :]
        UUID(operation_id)

        mock_alarms_service.start_delete_by_rule.assert_called_once_with(
            "rule-1", None, None, "asc", 0, None, [], operation_id
        )

    def test_passes_filters(self, client, mock_alarms_service):
        """Test query parameters reach the operation."""
        response = client.post(
            f"{API_BASE}/alarmsbyrule/delete/rule-1",
            params={
                "from": "2018-06-04T16:40:00Z",
                "to": "2018-06-05T16:40:00Z",
                "order": "DESC",
                "skip": 10,
                "limit": 50,
                "devices": "device-1, device-2",
            },
        )

        assert response.status_code == 202
        args = mock_alarms_service.start_delete_by_rule.call_args.args
        assert args[0] == "rule-1"
        assert args[1] == datetime(2018, 6, 4, 16, 40, tzinfo=timezone.utc)
        assert args[2] == datetime(2018, 6, 5, 16, 40, tzinfo=timezone.utc)
        assert args[3:7] == ("desc", 10, 50, ["device-1", "device-2"])

    def test_each_request_gets_new_operation_id(self, client):
        first = client.post(f"{API_BASE}/alarmsbyrule/delete/rule-1")
        second = client.post(f"{API_BASE}/alarmsbyrule/delete/rule-1")

        assert first.text != second.text

    def test_too_many_devices_returns_400(self, client, mock_alarms_service):
        """Test more than 200 devices is rejected with a warning."""
        devices = ",".join(f"device-{i}" for i in range(201))

        with patch("telemetry_api.routes.routes_alarms_by_rule.logger") as mock_logger:
            response = client.post(f"{API_BASE}/alarmsbyrule/delete/rule-1", params={"devices": devices})

        assert response.status_code == 400
        mock_logger.warning.assert_called_once()
        mock_alarms_service.start_delete_by_rule.assert_not_called()

    def test_invalid_date_returns_400(self, client, mock_alarms_service):
        response = client.post(f"{API_BASE}/alarmsbyrule/delete/rule-1", params={"from": "yesterday"})

        assert response.status_code == 400
        mock_alarms_service.start_delete_by_rule.assert_not_called()

    def test_invalid_order_returns_400(self, client):
        response = client.post(f"{API_BASE}/alarmsbyrule/delete/rule-1", params={"order": "random"})

        assert response.status_code == 400

    def test_storage_not_configured_returns_503(self, unconfigured_client):
        response = unconfigured_client.post(f"{API_BASE}/alarmsbyrule/delete/rule-1")

        assert response.status_code == 503


class TestGetDeleteStatus:
    """Tests for GET /alarmsbyrule/deletestatus/{operation_id}."""

    def test_returns_status(self, client, mock_alarms_service):
        mock_alarms_service.get_delete_by_rule_status.return_value = DeleteStatus(
            Id="op-1",
            Status="InProgress",
            Timestamp=datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc),
            RecordsDeleted=150,
        )

        response = client.get(f"{API_BASE}/alarmsbyrule/deletestatus/op-1")

        assert response.status_code == 200
        data = response.json()
        assert data["Id"] == "op-1"
        assert data["Status"] == "InProgress"
        assert data["RecordsDeleted"] == 150
        assert data["Timestamp"].startswith("2026-01-05T12:00:00")
        mock_alarms_service.get_delete_by_rule_status.assert_awaited_once_with("op-1")

    def test_unknown_status(self, client, mock_alarms_service):
        """Test an unknown operation is 200 with Unknown and null fields."""
        mock_alarms_service.get_delete_by_rule_status.return_value = DeleteStatus.unknown("missing")

        response = client.get(f"{API_BASE}/alarmsbyrule/deletestatus/missing")

        assert response.status_code == 200
        assert response.json() == {"Id": "missing", "Status": "Unknown", "Timestamp": None, "RecordsDeleted": None}

    def test_storage_error_returns_503(self, client, mock_alarms_service):
        mock_alarms_service.get_delete_by_rule_status.side_effect = StorageError("down")

        response = client.get(f"{API_BASE}/alarmsbyrule/deletestatus/op-1")

        assert response.status_code == 503
        assert response.json()["error_type"] == "StorageError"


class TestListAlarmsByRule:
    """Tests for GET /alarmsbyrule/{rule_id}."""

    def test_lists_alarms(self, client, mock_alarms_service):
        mock_alarms_service.list_by_rule.return_value = [
            Alarm(id="a1", rule_id="rule-1", device_id="device-1", description="Too hot", created=1528130400000)
        ]

        response = client.get(f"{API_BASE}/alarmsbyrule/rule-1", params={"from": "NOW-P1D"})

        assert response.status_code == 200
        items = response.json()["Items"]
        assert len(items) == 1
        assert items[0]["Id"] == "a1"
        assert items[0]["RuleId"] == "rule-1"
        assert items[0]["DeviceId"] == "device-1"
        assert items[0]["Status"] == "open"
        assert items[0]["DateCreated"].startswith("2018-06-04T16:40:00")

        args = mock_alarms_service.list_by_rule.await_args.args
        assert args[0] == "rule-1"
        assert args[1] is not None
        assert args[4:] == (0, 1000, [])

    def test_unencoded_plus_in_date(self, client, mock_alarms_service):
        """Test from=NOW+PT1H sent without percent-encoding reads as an hour ahead."""
        before = datetime.now(timezone.utc)

        response = client.get(f"{API_BASE}/alarmsbyrule/rule-1?from=NOW+PT1H")

        assert response.status_code == 200
        from_date = mock_alarms_service.list_by_rule.await_args.args[1]
        assert before + timedelta(minutes=59) < from_date < datetime.now(timezone.utc) + timedelta(minutes=61)

    def test_too_many_devices_returns_400(self, client, mock_alarms_service):
        devices = ",".join(str(i) for i in range(201))

        response = client.get(f"{API_BASE}/alarmsbyrule/rule-1", params={"devices": devices})

        assert response.status_code == 400
        mock_alarms_service.list_by_rule.assert_not_awaited()


class TestListAlarmCountsByRule:
    """Tests for GET /alarmsbyrule."""

    def test_counts(self, client, mock_alarms_service):
        mock_alarms_service.get_alarm_count_by_rule.return_value = [
            AlarmCountByRule(rule_id="rule-1", count=3, status="open", last_created=1528130400000),
            AlarmCountByRule(rule_id="rule-2", count=1),
        ]

        response = client.get(f"{API_BASE}/alarmsbyrule", params={"order": "desc", "limit": 10})

        assert response.status_code == 200
        items = response.json()["Items"]
        assert [item["RuleId"] for item in items] == ["rule-1", "rule-2"]
        assert items[0]["Count"] == 3
        assert items[0]["LastOccurrence"].startswith("2018-06-04T16:40:00")
        assert items[1]["LastOccurrence"] is None

        args = mock_alarms_service.get_alarm_count_by_rule.await_args.args
        assert args[2:] == ("desc", 0, 10, [])

    def test_negative_skip_is_rejected(self, client):
        response = client.get(f"{API_BASE}/alarmsbyrule", params={"skip": -1})

        assert response.status_code == 422


class TestDeleteStatusWithService:
    """Status route served by a real AlarmsService over a mocked storage client."""

    @pytest.fixture
    def service_client(self, app, mock_storage_client, alarms_config):
        app.state.alarms_service = AlarmsService(mock_storage_client, alarms_config, BackgroundTaskRunner())
        with TestClient(app) as test_client:
            yield test_client

    def test_unreadable_status_record_reads_unknown(self, service_client, mock_storage_client):
        """Test a stored status the service cannot parse is reported as Unknown."""
        mock_storage_client.query_documents.return_value = [
            {"Id": "op", "Status": "Cancelled", "Timestamp": "2026-01-05T12:00:00Z", "RecordsDeleted": 3}
        ]

        response = service_client.get(f"{API_BASE}/alarmsbyrule/deletestatus/op")

        assert response.status_code == 200
        assert response.json() == {"Id": "op", "Status": "Unknown", "Timestamp": None, "RecordsDeleted": None}
