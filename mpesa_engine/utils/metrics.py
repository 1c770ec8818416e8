"""Prometheus metrics definitions"""

from prometheus_client import Counter, Histogram, Gauge


# Extraction metrics
transactions_extracted = Counter(
    'mpesa_transactions_extracted_total',
    'Candidate transactions produced by an extractor',
    labelnames=['strategy']  # ai, pattern
)

extraction_fallbacks = Counter(
    'mpesa_extraction_fallbacks_total',
    'AI extraction calls that degraded to the pattern extractor',
    labelnames=['reason']  # no_client, llm_error, invalid_json, schema_violation
)

candidates_rejected = Counter(
    'mpesa_candidates_rejected_total',
    'Candidates dropped during validation',
    labelnames=['reason']
)

duplicates_removed = Counter(
    'mpesa_duplicates_removed_total',
    'Transactions removed by deduplication'
)

# LLM cost & usage tracking
llm_tokens_counter = Counter(
    'mpesa_llm_tokens_used_total',
    'Total LLM tokens consumed',
    labelnames=['model_name']
)

llm_cost_counter = Counter(
    'mpesa_llm_cost_dollars_total',
    'Total LLM cost in USD',
    labelnames=['model_name']
)

llm_api_latency = Histogram(
    'mpesa_llm_api_latency_seconds',
    'Latency of LLM API calls',
    labelnames=['model_name'],
    buckets=[0.5, 1, 2, 5, 10, 30]
)

llm_rate_limit_hits = Counter(
    'mpesa_llm_rate_limit_hits_total',
    'Number of LLM rate limit errors',
    labelnames=['model_name']
)

# Business metrics
transactions_categorized = Counter(
    'mpesa_transactions_categorized_total',
    'Transactions categorized',
    labelnames=['source']  # keyword, learned, uncategorized
)

anomaly_checks_fired = Counter(
    'mpesa_anomaly_checks_fired_total',
    'Anomaly checks that fired on a transaction',
    labelnames=['check']
)

reconciliation_match_rate = Gauge(
    'mpesa_reconciliation_match_rate',
    'Reconciliation rate of the most recent run (0-1)'
)

pipeline_stage_time = Histogram(
    'mpesa_pipeline_stage_seconds',
    'Execution time per pipeline stage',
    labelnames=['stage'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1, 5, 30]
)
