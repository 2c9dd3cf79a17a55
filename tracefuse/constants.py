"""tracefuse constants and fixed user-facing values."""

# HTTP Methods
SUPPORTED_HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]
BODY_HTTP_METHODS = ["POST", "PUT", "PATCH"]

# Wrapped tool artefacts
DEFAULT_CLI_EXECUTABLE = "teapie"
DEFAULT_REPORT_PATH = ".teapie/reports/last-run-report.xml"
DEFAULT_LOG_PATH = ".teapie/logs/last-run.log"

# Scanner windows (lines)
BODY_MAX_LINES = 200
RETRY_LOOKAHEAD_LINES = 50
ERROR_CONTEXT_LINES = 5

# Report
FAILURE_MESSAGE_LIMIT = 200

# Result names
SCRIPT_TESTS_RESULT_NAME = "Script-level tests"
NO_REQUESTS_RESULT_NAME = "No HTTP requests found"
EXECUTION_FAILED_RESULT_NAME = "HTTP request execution failed"

# User-facing error messages
ERROR_CONNECTION_REFUSED = "Connection refused - please ensure the server is running and accessible"
ERROR_CONNECTION_REFUSED_TO = "Connection refused to {url} - please ensure the server is running and accessible"
ERROR_HOST_NOT_FOUND = "Host not found - please check the URL in your HTTP request"
ERROR_TIMEOUT = "Request timed out - server may be unresponsive"
ERROR_EXECUTION_FAILED = "HTTP request execution failed"
ERROR_NO_HTTP_FOUND = (
    "No HTTP requests were processed - check if the file contains valid HTTP "
    "requests or if there are connection issues"
)

# Durations
ZERO_DURATION = "0ms"

# Default reason phrases for status codes logged without text
STATUS_TEXTS = {
    200: "OK",
    201: "Created",
    202: "Accepted",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def default_status_text(status_code: int) -> str:
    """Return the reason phrase for a status code, or 'Unknown'."""
    return STATUS_TEXTS.get(status_code, "Unknown")
