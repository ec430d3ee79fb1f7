"""Tests for structured logging and identifier redaction."""
import json
import logging
from flask import g
from backend.logging_config import (
    StructuredFormatter, SensitiveDataFilter, RequestContextFilter, setup_logging, LOG_FILE_NAME,
)


def make_record(msg, *args, **extra):
    record = logging.LogRecord('backend.test', logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def read_log(app):
    for handler in logging.getLogger().handlers:
        handler.flush()
    with open(f"{app.config['LOG_DIR']}/{LOG_FILE_NAME}") as f:
        return [json.loads(line) for line in f if line.strip()]


def test_redacts_aadhaar_and_pan():
    record = make_record("Owner %s with PAN %s", '1234 5678 9012', 'abcde1234f')
    assert SensitiveDataFilter().filter(record) is True
    assert record.getMessage() == 'Owner [AADHAAR] with PAN [PAN]'


def test_leaves_other_numbers_alone():
    record = make_record("Uploaded 1700000000000_12_front.jpg for survey 42")
    SensitiveDataFilter().filter(record)
    assert record.getMessage() == 'Uploaded 1700000000000_12_front.jpg for survey 42'


def test_structured_formatter():
    record = make_record("Created survey %d", 7, extra_fields={'ward': '12'})
    entry = json.loads(StructuredFormatter().format(record))
    assert entry['message'] == 'Created survey 7'
    assert entry['level'] == 'INFO'
    assert entry['logger'] == 'backend.test'
    assert entry['ward'] == '12'
    assert entry['time'].endswith('+05:30')
    assert 'request' not in entry


def test_request_context_outside_request():
    record = make_record("Background job")
    assert RequestContextFilter().filter(record) is True
    assert not hasattr(record, 'request')


def test_request_context_inside_request(app):
    record = make_record("Survey edited")
    with app.test_request_context('/api/surveys/3', method='PUT'):
        g.user = {'email': 'asha@example.com', 'isAdmin': False}
        RequestContextFilter().filter(record)
    entry = json.loads(StructuredFormatter().format(record))
    assert entry['request'] == {'method': 'PUT', 'path': '/api/surveys/3', 'user': 'asha@example.com'}


def test_log_file_written(app):
    logging.getLogger('backend.test').warning("PAN ABCDE1234F submitted")
    assert read_log(app)[-1]['message'] == 'PAN [PAN] submitted'


def test_request_logs_are_tagged(app):
    with app.test_request_context('/api/surveys', method='POST'):
        logging.getLogger('backend.test').info("Created survey 9")
    entry = read_log(app)[-1]
    assert entry['message'] == 'Created survey 9'
    assert entry['request'] == {'method': 'POST', 'path': '/api/surveys'}


def test_invalid_level_falls_back_to_info(app, tmp_path):
    app.config['LOG_LEVEL'] = 'chatty'
    app.config['LOG_DIR'] = str(tmp_path / 'other-logs')
    log_file = setup_logging(app)
    assert log_file.endswith(LOG_FILE_NAME)
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger('libcloud').level == logging.WARNING
