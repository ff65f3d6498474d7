"""트레이싱 핸들러 테스트"""

from modules.rag import NoopTracingHandler, StructlogTracingHandler


class TestStructlogTracingHandler:
    def test_records_span(self):
        tracer = StructlogTracingHandler()

        span = tracer.start_span("vector-search", "retriever", {"max_results": 20})
        span.set_output("Retrieved 3 documents")
        span.set_token_usage(10, 0, 10)
        span.end()
        span.end()

        spans = tracer.recent_spans("vector-search")
        assert len(spans) == 1
        assert spans[0].duration_ms is not None
        assert spans[0].metadata == {"max_results": 20}
        assert spans[0].token_usage["total_tokens"] == 10
        summary = tracer.tracing_get_metrics_summary()
        assert summary["operations"]["vector-search"]["count"] == 1
        assert summary["operations"]["vector-search"]["errors"] == 0

    def test_records_error(self):
        tracer = StructlogTracingHandler()

        span = tracer.start_span("query-embedding-creation", "embedding")
        span.set_error(RuntimeError("boom"))
        span.end()

        assert tracer.recent_spans()[0].error == "boom"
        assert tracer.tracing_get_metrics_summary()["operations"]["query-embedding-creation"]["errors"] == 1

    def test_bounded_history(self):
        tracer = StructlogTracingHandler(max_spans=3)

        for _ in range(5):
            tracer.start_span("s", "t").end()

        assert len(tracer.recent_spans()) == 3


class TestNoopTracingHandler:
    def test_all_calls_accepted(self):
        span = NoopTracingHandler().start_span("x", "y", {"a": 1})
        span.set_input("q")
        span.set_output("o")
        span.set_metadata({})
        span.set_token_usage(1, 0, 1)
        span.set_error(ValueError("e"))
        span.end()
