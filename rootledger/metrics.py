from prometheus_client import Counter, Histogram

REQS = Counter("rootledger_requests_total", "Total requests", ["path","method","status"])
LAT = Histogram("rootledger_request_latency_seconds", "Latency", ["path","method"])
APPENDED = Counter("rootledger_identities_appended_total", "Identities appended with their checkpoint")
APPEND_FAILURES = Counter("rootledger_append_failures_total", "Appends rolled back", ["reason"])
APPEND_LATENCY = Histogram("rootledger_append_seconds", "Append latency including lock wait")
MINED = Counter("rootledger_roots_mined_total", "Roots transitioned to mined")
