"""Unit tests for error classification."""

import pytest

from auditor.errors import (
    AllKeysExhausted,
    AnalysisError,
    AuditorError,
    ChunkAnalysisFailed,
    ConfigurationError,
    UpstreamApiError,
    is_network_error,
    is_quota_error,
    is_rate_limit_error,
    is_token_limit_error,
)


class TestHierarchy:

    @pytest.mark.parametrize("cls", [ConfigurationError, AllKeysExhausted, AnalysisError])
    def test_all_derive_from_base(self, cls):
        assert issubclass(cls, AuditorError)

    def test_all_keys_exhausted_default_message(self):
        assert str(AllKeysExhausted()) == "Все API ключи исчерпали свои квоты"

    def test_chunk_failure_carries_cause(self):
        cause = UpstreamApiError("boom", status=500)
        error = ChunkAnalysisFailed("chunk_3", cause)
        assert error.chunk_id == "chunk_3"
        assert error.cause is cause
        assert "chunk_3" in str(error)
        assert "boom" in str(error)


class TestUpstreamApiError:

    def test_quota_by_code(self):
        assert UpstreamApiError("nope", status=429, code="insufficient_quota").is_quota_exhausted

    def test_quota_by_message(self):
        assert UpstreamApiError("Insufficient Balance", status=402).is_quota_exhausted

    def test_rate_limit_by_status(self):
        error = UpstreamApiError("slow down", status=429)
        assert error.is_rate_limited
        assert not error.is_quota_exhausted

    def test_network_requires_no_status(self):
        assert UpstreamApiError("timed out", code="timeout").is_network_error
        assert not UpstreamApiError("timed out", status=504, code="timeout").is_network_error

    def test_retry_recommended_unset_until_classified(self):
        assert UpstreamApiError("x").retry_recommended is None


class TestPredicates:

    def test_quota_on_plain_exception(self):
        assert is_quota_error(RuntimeError("quota exceeded for this key"))

    def test_rate_limit_on_plain_exception(self):
        assert is_rate_limit_error(RuntimeError("Rate limit reached"))
        assert not is_rate_limit_error(RuntimeError("bad request"))

    def test_network(self):
        assert is_network_error(RuntimeError("Load failed"))
        assert is_network_error(UpstreamApiError("x", code="connection_error"))
        assert not is_network_error(RuntimeError("invalid json"))

    def test_token_limit(self):
        assert is_token_limit_error(RuntimeError("maximum context length is 64000 tokens"))
        assert not is_token_limit_error(RuntimeError("quota exceeded"))

    def test_tokens_per_minute_is_a_rate_limit(self):
        tpm = "Rate limit reached for model in organization on tokens per min (TPM): Limit 30000"

        assert not is_token_limit_error(RuntimeError(tpm))
        assert not is_token_limit_error(UpstreamApiError(tpm, status=429, code="rate_limit_exceeded"))
        assert is_rate_limit_error(UpstreamApiError(tpm, status=429, code="rate_limit_exceeded"))

    def test_token_limit_markers(self):
        assert is_token_limit_error(UpstreamApiError("This model's max_tokens is too large", status=400))
        assert is_token_limit_error(RuntimeError("context_length_exceeded"))
        assert not is_token_limit_error(RuntimeError("invalid token in request body"))
