import logging

from didledger.logging import OperationIdFilter, current_operation_id, get_logger, operation_context


def test_operation_context_sets_and_resets_id():
    assert current_operation_id() == "-"
    with operation_context("did.create") as operation_id:
        assert current_operation_id() == operation_id
        assert operation_id != "-"
    assert current_operation_id() == "-"


def test_nested_operation_context_reuses_outer_id():
    with operation_context("did.revoke") as outer:
        with operation_context("vc.revoke") as inner:
            assert inner == outer


def test_operation_id_filter_stamps_records():
    record = logging.LogRecord("didledger", logging.INFO, __file__, 1, "msg", None, None)
    with operation_context("vc.verify") as operation_id:
        assert OperationIdFilter().filter(record)
    assert record.operation_id == operation_id


def test_get_logger_defaults_to_app_name():
    assert get_logger().name == "didledger"
    assert get_logger("didledger.journal").name == "didledger.journal"
