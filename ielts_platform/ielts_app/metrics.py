"""Prometheus metrics helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQUEST_COUNT = Counter(
    "ielts_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "ielts_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    ["endpoint"],
)
MODEL_CALLS = Counter(
    "ielts_model_calls_total",
    "Generative model calls by model and outcome",
    ["kind", "model", "outcome"],
)
TOKENS_USED = Counter(
    "ielts_model_tokens_total",
    "Prompt plus completion tokens reported by the text model",
)
GENERATIONS = Counter(
    "ielts_generations_total",
    "Practice generation requests by module and result",
    ["module", "result"],
)
GENERATION_LATENCY = Histogram(
    "ielts_generation_latency_seconds",
    "End-to-end practice generation latency",
    ["module"],
    buckets=(1, 5, 10, 20, 30, 60, 90, 120, 180, 300),
)


def record_request(method: str, endpoint: str, status: int, latency: float) -> None:
    REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)


def record_model_call(kind: str, model: str, outcome: str) -> None:
    MODEL_CALLS.labels(kind=kind, model=model, outcome=outcome).inc()


def record_tokens(tokens: int) -> None:
    if tokens > 0:
        TOKENS_USED.inc(tokens)


def record_generation(module: str, result: str, latency: float) -> None:
    GENERATIONS.labels(module=module, result=result).inc()
    GENERATION_LATENCY.labels(module=module).observe(latency)


def latest_metrics() -> tuple[bytes, str]:
    data = generate_latest()
    return data, CONTENT_TYPE_LATEST
