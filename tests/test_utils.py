import asyncio
from datetime import date
from unittest.mock import MagicMock

import pytest

from cv_intelligence.helpers.dates import find_date_range, is_open_end, months_between, parse_month
from cv_intelligence.utils.exceptions import (
    ExceptionContext, ExtractionError, ProcessingError, UnreadableDocument, retry_with_logging,
)
from cv_intelligence.utils.logging_config import PerformanceMonitor, get_logger
from cv_intelligence.utils.utils import clamp, content_id, cosine_similarity, parse_json_object


class TestParseJsonObject:
    """Test cases for pulling JSON objects out of model replies"""

    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_and_chatty(self):
        reply = 'Here you go:\n```json\n{"skills": ["Python"]}\n```\nAnything else?'
        assert parse_json_object(reply) == {"skills": ["Python"]}

    @pytest.mark.parametrize("reply", ["", "no json here", '{"a": 1', "[1, 2]", '{"a": }'])
    def test_rejects(self, reply):
        with pytest.raises(ValueError):
            parse_json_object(reply)

    def test_non_string(self):
        with pytest.raises(ValueError):
            parse_json_object(None)


class TestNumericHelpers:
    def test_cosine_similarity(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == 0.0

    @pytest.mark.parametrize("a,b", [(None, [1.0]), ([1.0], None), ([1.0, 2.0], [1.0]), ([0, 0], [1, 1]), ([], [])])
    def test_cosine_similarity_degenerate(self, a, b):
        assert cosine_similarity(a, b) == 0.0

    def test_clamp(self):
        assert clamp(1.5) == 1.0
        assert clamp(-2) == 0.0
        assert clamp(float("nan")) == 0.0

    def test_content_id(self):
        assert content_id(b"x", "a.txt") == content_id(b"x", "a.txt")
        assert content_id(b"x", "a.txt") != content_id(b"x", "b.txt")
        assert content_id(b"x", prefix="jd").startswith("jd_")


class TestDates:
    """Test cases for résumé date parsing"""

    TODAY = date(2024, 6, 15)

    @pytest.mark.parametrize("value,expected", [
        ("2019-06", date(2019, 6, 1)),
        ("2019/6", date(2019, 6, 1)),
        ("06/2019", date(2019, 6, 1)),
        ("Jun 2019", date(2019, 6, 1)),
        ("September 2019", date(2019, 9, 1)),
        ("Sept. 2019", date(2019, 9, 1)),
        ("2019", date(2019, 1, 1)),
        ("Present", date(2024, 6, 1)),
        ("current", date(2024, 6, 1)),
        ("2019-13", None),
        ("Date not specified", None),
        ("", None),
        (None, None),
    ])
    def test_parse_month(self, value, expected):
        assert parse_month(value, self.TODAY) == expected

    def test_months_between(self):
        assert months_between(date(2019, 6, 1), date(2020, 12, 1)) == 18

    def test_open_end(self):
        assert is_open_end(" Present ")
        assert not is_open_end("2020")

    @pytest.mark.parametrize("text,expected", [
        ("Acme | Jan 2019 - Present", ("Jan 2019", "Present")),
        ("2019-01 to 2021-03", ("2019-01", "2021-03")),
        ("03/2018 – 06/2020", ("03/2018", "06/2020")),
        ("2015 - 2017", ("2015", "2017")),
        ("no dates", None),
    ])
    def test_find_date_range(self, text, expected):
        assert find_date_range(text) == expected


class TestExceptionContext:
    """Test cases for stage exception wrapping"""

    def test_wraps_unexpected_errors(self):
        logger = MagicMock()
        with pytest.raises(ProcessingError) as exc_info:
            with ExceptionContext("score", logger, document_id="cv_1"):
                raise KeyError("scores")
        err = exc_info.value
        assert err.details["stage"] == "score"
        assert err.details["document_id"] == "cv_1"
        assert isinstance(err.cause, KeyError)
        logger.error.assert_called_once()

    def test_domain_errors_pass_through(self):
        with pytest.raises(UnreadableDocument):
            with ExceptionContext("parse", MagicMock()):
                raise UnreadableDocument("no text", file_name="x.pdf")

    def test_cancellation_passes_through(self):
        logger = MagicMock()
        with pytest.raises(asyncio.CancelledError):
            with ExceptionContext("profile", logger):
                raise asyncio.CancelledError()
        logger.error.assert_not_called()

    def test_to_dict(self):
        err = ExtractionError("HTTP 503", provider="ollama", status_code=503, cause=RuntimeError("down"))
        assert err.to_dict() == {
            "error_type": "ExtractionError",
            "error_code": "EXTRACTION_ERROR",
            "message": "HTTP 503",
            "details": {"provider": "ollama", "status_code": 503},
            "cause": "down",
        }


class TestRetryWithLogging:
    def test_retries_then_succeeds(self):
        calls = []

        @retry_with_logging(max_attempts=3, backoff_factor=0, exceptions=(ConnectionError,))
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("again")
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3

    def test_other_exceptions_are_not_retried(self):
        calls = []

        @retry_with_logging(max_attempts=3, backoff_factor=0, exceptions=(ConnectionError,))
        def broken():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            broken()
        assert len(calls) == 1


class TestLogging:
    def test_logger_namespace(self):
        assert get_logger("services.batch").name == "cv_intelligence.services.batch"
        assert get_logger("cv_intelligence.services.batch").name == "cv_intelligence.services.batch"

    def test_performance_monitor_warns_when_slow(self):
        logger = MagicMock()
        with PerformanceMonitor("resume cv.pdf", logger, threshold_ms=-1) as monitor:
            pass
        assert monitor.elapsed_ms >= 0
        logger.warning.assert_called_once()

    def test_performance_monitor_logs_failures(self):
        logger = MagicMock()
        with pytest.raises(RuntimeError):
            with PerformanceMonitor("resume cv.pdf", logger):
                raise RuntimeError("boom")
        logger.error.assert_called_once()
