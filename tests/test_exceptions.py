import pytest

from metabase_mcp._exceptions import (
    AuthenticationError,
    ConfigurationError,
    ErrorCode,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    MalformedResponseError,
    McpError,
    MethodNotFoundError,
    UpstreamApiError,
    classify_exception,
)


class TestBaseExceptions:
    """Tests for base exceptions."""

    def test_mcp_error(self):
        """Test that McpError can be raised and caught properly."""
        message = "base MCP error"
        with pytest.raises(McpError) as exc_info:
            raise McpError(message)
        assert str(exc_info.value) == message
        assert exc_info.value.message == message
        assert exc_info.value.code is ErrorCode.INTERNAL_ERROR

    def test_code_can_be_overridden(self):
        error = McpError("not here", code=ErrorCode.METHOD_NOT_FOUND)
        assert error.code is ErrorCode.METHOD_NOT_FOUND

    def test_internal_error_inheritance(self):
        """Test that InternalError inherits from both McpError and RuntimeError."""
        with pytest.raises(McpError):
            raise InternalError("boom")
        with pytest.raises(RuntimeError):
            raise InternalError("boom")


class TestExceptionParameterized:
    """Parameterized tests for common exception behaviors."""

    @pytest.mark.parametrize(
        "exception_class,parent_classes,code",
        [
            (InternalError, [McpError, RuntimeError], ErrorCode.INTERNAL_ERROR),
            (AuthenticationError, [InternalError, McpError], ErrorCode.INTERNAL_ERROR),
            (InvalidRequestError, [McpError, ValueError], ErrorCode.INVALID_REQUEST),
            (InvalidParamsError, [McpError, ValueError], ErrorCode.INVALID_PARAMS),
            (MethodNotFoundError, [McpError], ErrorCode.METHOD_NOT_FOUND),
            (ConfigurationError, [McpError], ErrorCode.INTERNAL_ERROR),
        ],
    )
    def test_hierarchy_and_default_code(self, exception_class, parent_classes, code):
        error = exception_class("message")
        for parent in parent_classes:
            assert isinstance(error, parent)
        assert error.code is code
        assert str(error) == "message"


class TestUpstreamApiError:
    def test_message_with_status(self):
        error = UpstreamApiError(500, "Internal Server Error", {"message": "db down"})
        assert str(error) == "API request failed with status 500: Internal Server Error"
        assert error.status == 500
        assert error.body == {"message": "db down"}
        assert error.code is ErrorCode.INTERNAL_ERROR

    def test_message_without_status(self):
        error = UpstreamApiError(0, "connection refused")
        assert str(error) == "API request failed: connection refused"
        assert error.body == {}

    def test_detail_prefers_body_message(self):
        assert UpstreamApiError(404, "Not Found", {"message": "No dashboard"}).detail == "No dashboard"

    def test_detail_falls_back_to_reason(self):
        assert UpstreamApiError(404, "Not Found", "plain text").detail == "Not Found"
        assert UpstreamApiError(404, "Not Found").detail == "Not Found"

    def test_detail_unknown(self):
        assert UpstreamApiError(502, "").detail == "Unknown error"

    def test_malformed_response_error(self):
        error = MalformedResponseError(200, "OK", "Response from /api/card is not valid JSON")
        assert isinstance(error, UpstreamApiError)
        assert error.detail == "Response from /api/card is not valid JSON"


class TestClassifyException:
    def test_upstream_error_becomes_internal(self):
        error = classify_exception(UpstreamApiError(403, "Forbidden", {"message": "No access"}))
        assert isinstance(error, InternalError)
        assert error.message == "Metabase API error: No access"

    def test_upstream_error_without_body_uses_reason(self):
        error = classify_exception(UpstreamApiError(503, "Service Unavailable"))
        assert error.message == "Metabase API error: Service Unavailable"

    @pytest.mark.parametrize(
        "error",
        [
            InvalidParamsError("card_id: Field required"),
            InvalidRequestError("Unknown tool: nope"),
            AuthenticationError("Failed to authenticate with Metabase"),
        ],
    )
    def test_classified_errors_pass_through(self, error):
        assert classify_exception(error) is error

    def test_unexpected_exception_names_type(self):
        error = classify_exception(KeyError("cards"))
        assert isinstance(error, InternalError)
        assert error.message == "KeyError: 'cards'"
