"""
Tests for syncscope.core.logging module.
"""

from unittest.mock import Mock

import pytest

from syncscope.core.logging import OperationLogger


class TestOperationLogger:
    """Tests for OperationLogger."""

    def test_completed(self) -> None:
        logger = Mock()
        with OperationLogger("refresh subscriptions", logger, app_id="todo"):
            pass

        assert logger.info.call_args_list[0].args == ("Starting refresh subscriptions",)
        assert logger.info.call_args_list[1].args == ("Completed refresh subscriptions",)
        assert logger.info.call_args_list[1].kwargs["app_id"] == "todo"
        logger.error.assert_not_called()

    def test_explicit_failure(self) -> None:
        logger = Mock()
        with OperationLogger("add subscription", logger) as op_log:
            op_log.fail("Class Missing doesn't exist!")

        logger.error.assert_called_once()
        assert logger.error.call_args.kwargs["error"] == "Class Missing doesn't exist!"

    def test_exception(self) -> None:
        logger = Mock()
        with pytest.raises(RuntimeError):
            with OperationLogger("remove subscription", logger):
                raise RuntimeError("connection lost")

        assert logger.error.call_args.kwargs["error_type"] == "RuntimeError"
