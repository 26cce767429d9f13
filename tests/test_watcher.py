"""Tests for transcriptnorm.watcher: _ExportEventHandler and watch()."""

from __future__ import annotations

import signal
from unittest.mock import MagicMock, patch

import pytest

from transcriptnorm.config import Config
from transcriptnorm.export_parser import ExportFormatError
from transcriptnorm.run_state import RunState
from transcriptnorm.watcher import _ExportEventHandler, watch


@pytest.fixture
def watcher_config(tmp_path):
    export_dir = tmp_path / "exports"
    export_dir.mkdir()
    calls = export_dir / "GONG_DATA.json"
    users = export_dir / "GONG_USERS.json"
    calls.write_text("[]")
    users.write_text("[]")
    return Config(calls_path=calls, users_path=users)


@pytest.fixture
def mock_state():
    return MagicMock(spec=RunState)


def _event(path, is_directory=False):
    event = MagicMock()
    event.is_directory = is_directory
    event.src_path = str(path)
    return event


class TestExportEventHandler:
    def test_directory_ignored(self, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state)
        handler.on_modified(_event(watcher_config.calls_path.parent, is_directory=True))
        assert handler._timer is None

    def test_other_file_ignored(self, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state)
        handler.on_modified(_event("/some/other/file.txt"))
        assert handler._timer is None

    def test_output_file_ignored(self, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state)
        handler.on_modified(_event(watcher_config.resolved_output_path))
        assert handler._timer is None

    @pytest.mark.parametrize("attr", ["calls_path", "users_path"])
    def test_export_change_schedules_run(self, watcher_config, mock_state, attr):
        handler = _ExportEventHandler(watcher_config, mock_state)
        with patch("transcriptnorm.watcher.threading.Timer") as MockTimer:
            mock_timer = MagicMock()
            MockTimer.return_value = mock_timer
            handler.on_modified(_event(getattr(watcher_config, attr)))
            MockTimer.assert_called_once()
            mock_timer.start.assert_called_once()

    def test_created_schedules_run(self, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state)
        with patch("transcriptnorm.watcher.threading.Timer") as MockTimer:
            handler.on_created(_event(watcher_config.calls_path))
            MockTimer.assert_called_once()

    def test_moved_uses_destination(self, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state)
        event = _event("/tmp/upload.partial")
        event.dest_path = str(watcher_config.users_path)
        with patch("transcriptnorm.watcher.threading.Timer") as MockTimer:
            handler.on_moved(event)
            MockTimer.assert_called_once()

    def test_schedule_cancels_previous_timer(self, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state)
        with patch("transcriptnorm.watcher.threading.Timer") as MockTimer:
            first_timer = MagicMock()
            second_timer = MagicMock()
            MockTimer.side_effect = [first_timer, second_timer]
            handler.on_modified(_event(watcher_config.calls_path))
            handler.on_modified(_event(watcher_config.users_path))
            first_timer.cancel.assert_called_once()
            second_timer.start.assert_called_once()

    @patch("transcriptnorm.watcher.run_normalization")
    def test_do_run_calls_pipeline(self, mock_run, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state, dry_run=True)
        handler._do_run()
        mock_run.assert_called_once_with(watcher_config, mock_state, dry_run=True)

    @patch("transcriptnorm.watcher.run_normalization", side_effect=Exception("boom"))
    def test_do_run_exception_logged(self, mock_run, watcher_config, mock_state):
        handler = _ExportEventHandler(watcher_config, mock_state)
        # Should not raise
        handler._do_run()


class TestWatch:
    @patch("transcriptnorm.watcher.run_normalization")
    def test_export_dir_not_exists(self, mock_run, mock_state, tmp_path):
        cfg = Config(
            calls_path=tmp_path / "nonexistent" / "calls.json",
            users_path=tmp_path / "users.json",
        )
        with pytest.raises(SystemExit):
            watch(cfg, mock_state)
        mock_run.assert_not_called()

    @patch("transcriptnorm.watcher.time.sleep", side_effect=SystemExit)
    @patch("transcriptnorm.watcher.signal.signal")
    @patch("transcriptnorm.watcher.Observer")
    @patch("transcriptnorm.watcher.run_normalization")
    def test_initial_run_called(self, mock_run, MockObserver, mock_signal, mock_sleep, watcher_config, mock_state):
        with pytest.raises(SystemExit):
            watch(watcher_config, mock_state)
        mock_run.assert_called_once_with(watcher_config, mock_state, dry_run=False)

    @patch("transcriptnorm.watcher.time.sleep", side_effect=SystemExit)
    @patch("transcriptnorm.watcher.signal.signal")
    @patch("transcriptnorm.watcher.Observer")
    @patch("transcriptnorm.watcher.run_normalization", side_effect=ExportFormatError("bad"))
    def test_failed_initial_run_keeps_watching(self, mock_run, MockObserver, mock_signal, mock_sleep, watcher_config, mock_state):
        with pytest.raises(SystemExit):
            watch(watcher_config, mock_state)
        MockObserver.return_value.start.assert_called_once()

    @patch("transcriptnorm.watcher.time.sleep", side_effect=SystemExit)
    @patch("transcriptnorm.watcher.signal.signal")
    @patch("transcriptnorm.watcher.Observer")
    @patch("transcriptnorm.watcher.run_normalization", side_effect=PermissionError("denied"))
    def test_initial_os_error_keeps_watching(self, mock_run, MockObserver, mock_signal, mock_sleep, watcher_config, mock_state):
        with pytest.raises(SystemExit):
            watch(watcher_config, mock_state)
        MockObserver.return_value.start.assert_called_once()

    @patch("transcriptnorm.watcher.time.sleep", side_effect=SystemExit)
    @patch("transcriptnorm.watcher.signal.signal")
    @patch("transcriptnorm.watcher.Observer")
    @patch("transcriptnorm.watcher.run_normalization")
    def test_shared_directory_scheduled_once(self, mock_run, MockObserver, mock_signal, mock_sleep, watcher_config, mock_state):
        with pytest.raises(SystemExit):
            watch(watcher_config, mock_state)
        assert MockObserver.return_value.schedule.call_count == 1

    @patch("transcriptnorm.watcher.time.sleep", side_effect=SystemExit)
    @patch("transcriptnorm.watcher.signal.signal")
    @patch("transcriptnorm.watcher.Observer")
    @patch("transcriptnorm.watcher.run_normalization")
    def test_observer_started_and_stopped(self, mock_run, MockObserver, mock_signal, mock_sleep, watcher_config, mock_state):
        mock_obs = MockObserver.return_value
        with pytest.raises(SystemExit):
            watch(watcher_config, mock_state)
        mock_obs.start.assert_called_once()
        mock_obs.stop.assert_called_once()
        mock_obs.join.assert_called_once()

    @patch("transcriptnorm.watcher.time.sleep", side_effect=SystemExit)
    @patch("transcriptnorm.watcher.signal.signal")
    @patch("transcriptnorm.watcher.Observer")
    @patch("transcriptnorm.watcher.run_normalization")
    def test_signal_handlers_registered(self, mock_run, MockObserver, mock_signal, mock_sleep, watcher_config, mock_state):
        with pytest.raises(SystemExit):
            watch(watcher_config, mock_state)
        sig_calls = [c[0][0] for c in mock_signal.call_args_list]
        assert signal.SIGINT in sig_calls
        assert signal.SIGTERM in sig_calls

    @patch("transcriptnorm.watcher.time.sleep")
    @patch("transcriptnorm.watcher.signal.signal")
    @patch("transcriptnorm.watcher.Observer")
    @patch("transcriptnorm.watcher.run_normalization")
    def test_shutdown_handler_sets_stop_event(self, mock_run, MockObserver, mock_signal, mock_sleep, watcher_config, mock_state):
        captured_handler = None

        def capture_signal(signum, handler):
            nonlocal captured_handler
            if signum == signal.SIGINT:
                captured_handler = handler

        mock_signal.side_effect = capture_signal

        def sleep_side_effect(_):
            captured_handler(signal.SIGINT, None)

        mock_sleep.side_effect = sleep_side_effect
        watch(watcher_config, mock_state)
        MockObserver.return_value.stop.assert_called_once()
