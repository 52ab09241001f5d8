"""Tests for the redex exception hierarchy."""

import pytest

from redex.kernel.exceptions import (
    CodecException,
    ConfigurationException,
    CryptoException,
    InfrastructureException,
    InvalidSessionException,
    LifecycleException,
    RedexException,
    StoreException,
    SubscriberException,
)


class TestRedexException:
    def test_basic_creation(self):
        exc = RedexException("something went wrong")
        assert str(exc) == "something went wrong"
        assert exc.code is None
        assert exc.context == {}

    def test_with_error_code(self):
        exc = RedexException("bad header", code="CODEC_BAD_HEADER")
        assert exc.code == "CODEC_BAD_HEADER"

    def test_with_context(self):
        exc = RedexException("write failed", code="STORE_WRITE_FAILED", context={"session_id": "S1"})
        assert exc.context["session_id"] == "S1"

    def test_context_not_shared_between_instances(self):
        exc = RedexException("a")
        exc.context["key"] = "value"
        assert RedexException("b").context == {}


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_type",
        [
            ConfigurationException,
            LifecycleException,
            InvalidSessionException,
            CodecException,
            CryptoException,
            InfrastructureException,
        ],
    )
    def test_direct_subclasses_of_base(self, exc_type):
        assert issubclass(exc_type, RedexException)

    def test_store_is_infrastructure(self):
        assert issubclass(StoreException, InfrastructureException)

    def test_subscriber_is_infrastructure(self):
        assert issubclass(SubscriberException, InfrastructureException)

    def test_catch_all_redex_exceptions(self):
        for exc in (CodecException("x"), StoreException("y"), CryptoException("z")):
            with pytest.raises(RedexException):
                raise exc

    def test_chained_cause_is_preserved(self):
        try:
            try:
                raise ConnectionError("refused")
            except ConnectionError as cause:
                raise StoreException("write failed") from cause
        except StoreException as exc:
            assert isinstance(exc.__cause__, ConnectionError)
