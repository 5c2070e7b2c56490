from lightdash_mcp.logging import get_logger, log_extra, redact_api_key
from lightdash_mcp.logging.mcp_logger import ColoredFormatter, session_filter


def test_api_key_is_redacted():
    headers = {"Authorization": "ApiKey secret-token", "Accept": "application/json"}

    assert redact_api_key(headers) == {"Authorization": "ApiKey ***", "Accept": "application/json"}
    assert headers["Authorization"] == "ApiKey secret-token"


def test_log_extra_skips_empty_values():
    assert log_extra(project_uuid="p1", table=None, limit=10) == "project_uuid:p1 | limit:10"


def test_component_loggers_are_namespaced_and_isolated():
    logger = get_logger("QUERY")

    assert logger.name == "lightdash_mcp.QUERY"
    assert logger.propagate is False
    assert get_logger("QUERY") is logger
    assert logger.filters.count(session_filter) == 1


def test_component_logger_gets_a_single_console_handler():
    get_logger("PROMPT")
    logger = get_logger("PROMPT")

    colored = [h for h in logger.handlers if isinstance(h.formatter, ColoredFormatter)]
    assert len(colored) == 1
