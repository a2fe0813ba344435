import json

from conftest import build_issue, write_issues

from issuefold import IssueTracker, load_config
from issuefold.logging import StructuredLogger, configure_logging, get_logger

CONFIG_WITH_JSON_LOGGING = """
version: 1
storage:
  directory: .issues
logging:
  json_enabled: true
  level: INFO
"""

CONFIG_WITHOUT_JSON_LOGGING = """
version: 1
storage:
  directory: .issues
logging:
  json_enabled: false
  level: DEBUG
"""


def _json_lines(out: str) -> list[dict]:
    entries = []
    for line in out.split('\n'):
        if line.strip().startswith('{'):
            try:
                entries.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                pass
    return entries


def test_structured_logger_json_format(capsys):
    """Test that structured logger produces JSON output when configured."""
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_operation('test_operation', param1='value1', param2=42)

    captured = capsys.readouterr()
    log_lines = [line for line in captured.out.strip().split('\n') if line]

    assert len(log_lines) == 1
    log_data = json.loads(log_lines[0])

    assert log_data['level'] == 'INFO'
    assert log_data['operation'] == 'test_operation'
    assert log_data['param1'] == 'value1'
    assert log_data['param2'] == 42
    assert 'timestamp' in log_data


def test_structured_logger_regular_format(capsys):
    """Test that structured logger produces regular text output when JSON disabled."""
    logger = StructuredLogger(name='test', json_logging=False, level='INFO')
    logger.log_operation('test_operation', param1='value1')

    captured = capsys.readouterr()
    assert 'Operation: test_operation' in captured.out
    assert 'INFO' in captured.out


def test_structured_logger_issue_actions(capsys):
    """Test structured logging of issue actions."""
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_issue_action('merged', 'abc123', dry_run=True, conflicts=2)

    captured = capsys.readouterr()
    log_data = json.loads(captured.out.strip())

    assert log_data['operation'] == 'issue_merged'
    assert log_data['issue_id'] == 'abc123'
    assert log_data['conflicts'] == 2
    assert log_data['dry_run'] is True
    assert log_data['message'] == 'issue merged abc123 [DRY]'


def test_structured_logger_performance_timing(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_performance('merge', 1234.56, issues=10)

    log_data = json.loads(capsys.readouterr().out.strip())
    assert log_data['operation'] == 'merge'
    assert log_data['duration_ms'] == 1234.56
    assert log_data['issues'] == 10


def test_json_mode_suppresses_identical_consecutive_entries(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_operation('repeat', n=1)
    logger.log_operation('repeat', n=1)
    logger.log_operation('repeat', n=2)
    assert len(_json_lines(capsys.readouterr().out)) == 2


def test_timed_operation_context_manager(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')

    with logger.timed_operation('test_merge', dry_run=True):
        pass

    log_lines = _json_lines(capsys.readouterr().out)
    assert log_lines[0]['operation'] == 'test_merge_start'
    assert log_lines[0]['dry_run'] is True
    assert log_lines[1]['operation'] == 'test_merge'
    assert 'duration_ms' in log_lines[1]


def test_timed_operation_logs_failures(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    try:
        with logger.timed_operation('doomed'):
            raise RuntimeError('boom')
    except RuntimeError:
        pass
    entries = _json_lines(capsys.readouterr().out)
    assert entries[-1]['level'] == 'ERROR'
    assert entries[-1]['error'] == 'boom'


def test_tracker_merge_emits_json_logs(tmp_path, capsys):
    cfg_path = tmp_path / 'issuefold.yaml'
    cfg_path.write_text(CONFIG_WITH_JSON_LOGGING)
    tracker = IssueTracker(load_config(cfg_path))
    write_issues(tracker.store, 'issues.jsonl', [build_issue('abc123', title='A')])
    write_issues(tracker.store, 'issues-b.jsonl', [build_issue('abc123', title='B')])

    tracker.merge()

    operations = [entry.get('operation') for entry in _json_lines(capsys.readouterr().out)]
    assert 'merge_start' in operations
    assert 'issue_merged' in operations
    assert 'merge_completed' in operations


def test_tracker_with_json_logging_disabled(tmp_path, capsys):
    cfg_path = tmp_path / 'issuefold.yaml'
    cfg_path.write_text(CONFIG_WITHOUT_JSON_LOGGING)
    tracker = IssueTracker(load_config(cfg_path))
    tracker.detect()

    captured = capsys.readouterr()
    assert _json_lines(captured.out) == []
    assert 'Operation: detect_start' in captured.out


def test_configure_logging():
    logger1 = configure_logging(json_logging=True, level='DEBUG')
    logger2 = configure_logging(json_logging=False, level='INFO')

    assert isinstance(logger1, StructuredLogger)
    assert logger2 is get_logger()
    assert logger1 is not logger2
