"""Tests for progress reporters."""

from imgstore.errors import ImageProcessingError
from imgstore.events import ResizeAllEvent, ResizeAllProgressEvent, ResizeEvent
from imgstore.progress import LoggingProgress, ProgressReporter


class TestProgressReporter:
    """Tests for the no-op base reporter."""

    def test_methods_are_no_ops(self):
        reporter = ProgressReporter()

        reporter.on_thumbnail_progress(ResizeEvent('uid.jpeg'))
        reporter.on_thumbnail_error(RuntimeError('boom'))
        reporter.on_image_resized(ResizeEvent('uid.jpeg'))
        reporter.on_bulk_progress(ResizeAllProgressEvent(1, 2, 'uid.jpeg'))
        reporter.on_bulk_complete(ResizeAllEvent(2, 2))


class TestEvents:
    """Tests for event payloads."""

    def test_resize_event_defaults(self):
        event = ResizeEvent('uid.jpeg')

        assert event.resized == []
        assert event.errors == 0

    def test_bulk_progress_event(self):
        event = ResizeAllProgressEvent(resized=3, total=10, id='uid.jpeg')

        assert event.remaining == 7
        assert event == ResizeAllProgressEvent(3, 10, 'uid.jpeg')


class TestLoggingProgress:
    """Tests for LoggingProgress class."""

    def test_init_defaults(self, logger):
        progress = LoggingProgress(logger=logger)

        assert progress.show_files is False
        assert progress.log_interval == 100
        assert progress.error_count == 0

    def test_thumbnail_error_counted(self, logger, caplog):
        progress = LoggingProgress(logger=logger)

        progress.on_thumbnail_error(ImageProcessingError('bad header', '/images/uid.jpeg'))

        assert progress.error_count == 1
        assert '/images/uid.jpeg' in caplog.text

    def test_show_files_error(self, logger, capsys):
        progress = LoggingProgress(show_files=True, logger=logger)

        progress.on_thumbnail_error(ImageProcessingError('bad header', '/images/uid.jpeg'))

        captured = capsys.readouterr()
        assert 'ERROR' in captured.out
        assert 'bad header' in captured.out

    def test_show_files_image_resized(self, logger, capsys):
        progress = LoggingProgress(show_files=True, logger=logger)

        progress.on_image_resized(ResizeEvent('uid.jpeg', ['sm', 'md'], 0))
        progress.on_image_resized(ResizeEvent('other.jpeg', ['sm'], 1))

        captured = capsys.readouterr()
        assert '[OK] uid.jpeg -> sm, md' in captured.out
        assert '[PARTIAL] other.jpeg' in captured.out

    def test_bulk_progress_logged_at_interval(self, logger):
        progress = LoggingProgress(log_interval=2, logger=logger)

        progress.on_bulk_progress(ResizeAllProgressEvent(1, 4, 'a.jpeg'))
        assert progress.last_logged == 0

        progress.on_bulk_progress(ResizeAllProgressEvent(2, 4, 'b.jpeg'))
        assert progress.last_logged == 2

    def test_bulk_complete_logged(self, logger, caplog):
        caplog.set_level('INFO', logger='test')
        progress = LoggingProgress(logger=logger)

        progress.on_bulk_complete(ResizeAllEvent(5, 6))

        assert '5/6' in caplog.text
