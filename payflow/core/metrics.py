from prometheus_client import Counter, Histogram

# Transport
API_REQUEST_COUNT = Counter(
    "payflow_api_requests_total", "Total API requests", ["method", "status"]
)
API_REQUEST_DURATION = Histogram(
    "payflow_api_request_duration_seconds", "API request duration"
)
API_ERROR_COUNT = Counter(
    "payflow_api_errors_total", "Total API errors", ["error_code"]
)

# Settlement
STATUS_POLL_COUNT = Counter(
    "payflow_status_polls_total", "Deposit status checks", ["result"]
)
SETTLEMENT_OUTCOME_COUNT = Counter(
    "payflow_settlement_outcomes_total", "Delivered transaction outcomes", ["channel", "outcome"]
)
