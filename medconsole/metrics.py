from prometheus_client import Counter

GATEWAY_REQUESTS = Counter(
    "console_gateway_requests_total",
    "Remote API calls issued by the console",
    ["operation", "outcome"]
)

ACTIONS_SETTLED = Counter(
    "console_actions_total",
    "Operator actions settled by the console",
    ["action", "outcome"]
)
