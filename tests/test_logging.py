from __future__ import annotations

import logging

from canasta.runtime.logging import LOG_FORMAT_DEBUG, LOG_NAMESPACE, get_logger, set_log_level


def test_module_loggers_live_under_the_namespace() -> None:
    assert get_logger("canasta.ticket.matching").name == "canasta.ticket.matching"
    assert get_logger("plugins.exito").name == "canasta.plugins.exito"
    assert logging.getLogger(LOG_NAMESPACE).propagate is False


def test_set_log_level_switches_to_line_number_format() -> None:
    namespace_logger = logging.getLogger(LOG_NAMESPACE)
    previous = namespace_logger.level
    try:
        set_log_level(logging.DEBUG)

        assert namespace_logger.level == logging.DEBUG
        assert namespace_logger.handlers
        assert all(handler.formatter._fmt == LOG_FORMAT_DEBUG for handler in namespace_logger.handlers)
    finally:
        set_log_level(previous)
