"""
Tests for the operation decorator and OperationHandler.
"""

from unittest.mock import Mock

import pytest

from guest_wifi_sync.context.operation_context import OperationHandler, operation
from guest_wifi_sync.context.tenant_context import tenant_context
from guest_wifi_sync.exceptions import BaseError, get_correlation_id, set_correlation_id


class Widget:
    @operation()
    def run(self, value):
        return value * 2

    @operation(name="widget_fail")
    def fail(self):
        raise BaseError("boom")


class TestOperationDecorator:
    def test_returns_result_and_sets_correlation_id(self):
        assert Widget().run(21) == 42
        assert get_correlation_id() is not None

    def test_existing_correlation_id_kept(self):
        set_correlation_id("corr-fixed")
        Widget().run(1)
        assert get_correlation_id() == "corr-fixed"

    def test_base_error_enriched_with_operation(self):
        with pytest.raises(BaseError) as exc_info:
            Widget().fail()

        assert exc_info.value.context["operation_name"] == "widget_fail"
        assert "operation_id" in exc_info.value.context


class TestOperationHandler:
    def test_enter_and_exit_logged_with_tenant(self):
        logger = Mock()
        handler = OperationHandler(logger=logger)

        with tenant_context("tenant-a"):
            with handler.operation("sync", batch=3) as ctx:
                ctx.add_metric("tokens_updated", 2)

        enter, exit_ = logger.info.call_args_list
        assert enter.args[0] == "ENTER: sync"
        assert enter.kwargs["extra"]["tenant_id"] == "tenant-a"
        assert exit_.args[0] == "EXIT: sync"
        assert exit_.kwargs["extra"]["tokens_updated"] == 2
        assert exit_.kwargs["extra"]["status"] == "success"

    def test_unexpected_error_logged_and_reraised(self):
        logger = Mock()
        handler = OperationHandler(logger=logger)

        with pytest.raises(KeyError):
            with handler.operation("sync"):
                raise KeyError("x")

        logger.exception.assert_called_once()
        assert logger.exception.call_args.kwargs["extra"]["error_type"] == "KeyError"
