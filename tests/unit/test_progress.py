from __future__ import annotations

from unittest.mock import MagicMock, patch

from csv_reconcile.services.progress import ProgressReporter, TqdmProgress, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_reporter_single_final_call(record_progress, progress_calls):
    reporter = ProgressReporter(3, record_progress)
    reporter.advance(1, 1, 0)
    reporter.advance(2, 2, 1)
    reporter.finish(2, 1)
    assert progress_calls == [(1, 3, 1, 0), (3, 3, 2, 1)]


def test_reporter_finish_sends_final_when_incomplete(record_progress, progress_calls):
    reporter = ProgressReporter(4, record_progress)
    reporter.advance(1, 0, 1)
    reporter.finish(0, 1)
    assert progress_calls[-1] == (4, 4, 0, 1)
    assert [c for c in progress_calls if c[0] == c[1]] == [(4, 4, 0, 1)]


def test_reporter_zero_units(record_progress, progress_calls):
    reporter = ProgressReporter(0, record_progress)
    reporter.advance(0, 0, 0)
    reporter.finish(0, 2)
    assert progress_calls == [(0, 0, 0, 2)]


def test_reporter_without_callback_counts_calls():
    reporter = ProgressReporter(2)
    reporter.advance(5, 1, 0)
    assert reporter.current == 2
    reporter.finish(1, 0)
    assert reporter.calls == 1


def test_tqdm_progress_disabled_without_tty():
    with patch("csv_reconcile.services.progress.is_tty_enabled", return_value=False), \
         patch("csv_reconcile.services.progress.tqdm") as mock_tqdm:
        sink = TqdmProgress("Importing donors")
        sink(1, 2, 1, 0)
        mock_tqdm.assert_not_called()


def test_tqdm_progress_on_tty():
    bar = MagicMock()
    bar.n = 0
    with patch("csv_reconcile.services.progress.is_tty_enabled", return_value=True), \
         patch("csv_reconcile.services.progress.tqdm", return_value=bar) as mock_tqdm:
        with TqdmProgress("Importing donors") as sink:
            sink(1, 2, 1, 0)
            bar.n = 1
            sink(2, 2, 1, 1)
        mock_tqdm.assert_called_once_with(
            total=2,
            desc="Importing donors",
            unit="row",
            disable=False,
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )
    assert bar.update.call_args_list[0].args == (1,)
    bar.set_postfix.assert_called_with(success=1, failed=1)
    bar.close.assert_called_once()
