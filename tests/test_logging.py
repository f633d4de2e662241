import os
import zipfile

from app.utils.logging_utils import get_log_context, get_logger, log_context, logger_manager


def flush(logger):
    for handler in logger.handlers:
        handler.flush()


class TestCategorizedLogging:

    def test_category_file_with_context(self, app):
        logger = get_logger('cleanup')
        with log_context(job='photo_cleanup', dry_run=True):
            logger.info('scan started')
        flush(logger)

        path = os.path.join(app.config['LOGGING_BASE_DIR'], 'photo_cleanup.log')
        with open(path, encoding='utf-8') as fh:
            line = fh.read().strip().splitlines()[-1]
        assert 'scan started' in line
        assert 'job=photo_cleanup' in line
        assert 'dry_run=True' in line

    def test_context_is_scoped(self, app):
        with log_context(job='a'):
            pass
        assert get_log_context() == {}

    def test_import_time_loggers_follow_new_app(self, app):
        # the scheduler module logger was created when the module was imported
        from app.services import social_scheduler
        handler_files = [getattr(h, 'baseFilename', '') for h in social_scheduler.logger.handlers]
        assert any(f.startswith(app.config['LOGGING_BASE_DIR']) for f in handler_files)

    def test_unknown_category_gets_its_own_file(self, app):
        logger = get_logger('Billing')
        logger.warning('late invoice')
        flush(logger)
        assert os.path.exists(os.path.join(app.config['LOGGING_BASE_DIR'], 'billing.log'))
        assert logger.name == 'app.billing'


class TestLogCommands:

    def test_clear_single_category(self, app, runner):
        get_logger('social').info('x')
        get_logger('tasks').info('y')
        result = runner.invoke(args=['logs', 'clear', '--category', 'social', '--yes'])
        assert result.exit_code == 0
        base = app.config['LOGGING_BASE_DIR']
        assert not os.path.exists(os.path.join(base, 'social.log'))
        assert os.path.exists(os.path.join(base, 'tasks.log'))

    def test_archive_old_files(self, app, runner):
        logger = get_logger('tasks')
        logger.info('old line')
        flush(logger)
        path = os.path.join(app.config['LOGGING_BASE_DIR'], 'tasks.log')
        os.utime(path, (0, 0))

        result = runner.invoke(args=['logs', 'archive', '--older-than-days', '1'])
        assert result.exit_code == 0
        assert 'Archived' in result.output
        archive_dir = logger_manager().archive_dir
        archived = [name for name in os.listdir(archive_dir) if name.startswith('tasks.log_')]
        assert len(archived) == 1
        with zipfile.ZipFile(os.path.join(archive_dir, archived[0])) as zf:
            assert b'old line' in zf.read('tasks.log')
        assert not os.path.exists(path)

        logger.info('after archive')
        flush(logger)
        with open(path, encoding='utf-8') as fh:
            assert 'after archive' in fh.read()
