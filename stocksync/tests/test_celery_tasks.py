"""Tests for the scheduled sync Celery task and beat configuration."""

import pytest
from unittest.mock import patch, MagicMock

from stocksync.services.errors import AuthError, ServiceUnavailableError
from stocksync.services.reconciliation import SyncResult


def _result():
    result = SyncResult(cars_added=2, cars_updated=1)
    result.finish(250)
    return result


class TestScheduledSyncTask:

    @patch("stocksync.tasks.sync_tasks.run_stock_sync")
    @patch("stocksync.tasks.sync_tasks.SessionLocal")
    def test_runs_sync_and_returns_dict(self, mock_session_local, mock_sync):
        mock_db = MagicMock()
        mock_session_local.return_value = mock_db
        mock_sync.return_value = _result()

        from stocksync.tasks.sync_tasks import run_scheduled_sync
        data = run_scheduled_sync()

        mock_sync.assert_called_once_with(mock_db)
        assert data["status"] == "success"
        assert data["cars_added"] == 2
        mock_db.close.assert_called_once()

    @patch("stocksync.tasks.sync_tasks.run_stock_sync", side_effect=AuthError("Authentication failed: 401"))
    @patch("stocksync.tasks.sync_tasks.SessionLocal")
    def test_fatal_error_propagates_and_closes_session(self, mock_session_local, mock_sync):
        mock_db = MagicMock()
        mock_session_local.return_value = mock_db

        from stocksync.tasks.sync_tasks import run_scheduled_sync
        with pytest.raises(AuthError):
            run_scheduled_sync()
        mock_db.close.assert_called_once()

    @patch("stocksync.tasks.sync_tasks.run_stock_sync", side_effect=ServiceUnavailableError("down", status_code=503))
    @patch("stocksync.tasks.sync_tasks.SessionLocal")
    def test_transient_error_goes_through_retry(self, mock_session_local, mock_sync):
        mock_session_local.return_value = MagicMock()

        from stocksync.tasks.sync_tasks import run_scheduled_sync
        # Called directly, Task.retry re-raises the original error
        with pytest.raises(ServiceUnavailableError):
            run_scheduled_sync()


class TestBeatSchedule:

    def test_sync_scheduled_every_interval(self):
        from stocksync.celery_app import app, settings

        entry = app.conf.beat_schedule["run-scheduled-sync"]
        assert entry["task"] == "stocksync.tasks.sync_tasks.run_scheduled_sync"
        assert entry["schedule"].minute == set(range(0, 60, settings.sync_interval_minutes))
