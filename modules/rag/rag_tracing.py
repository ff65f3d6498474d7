"""RAG 트레이싱 서비스

임베딩 생성, 벡터 검색 등 개별 작업을 스팬 단위로 기록
트레이싱이 꺼져 있어도 오케스트레이터는 동일한 인터페이스(NoopTracingHandler)를 호출
"""

import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class TraceSpan(ABC):
    """단일 작업 스팬"""

    @abstractmethod
    def set_input(self, value: Any) -> None: ...

    @abstractmethod
    def set_output(self, value: Any) -> None: ...

    @abstractmethod
    def set_metadata(self, metadata: Dict[str, Any]) -> None: ...

    @abstractmethod
    def set_token_usage(self, input_tokens: int, output_tokens: int, total_tokens: int) -> None: ...

    @abstractmethod
    def set_error(self, error: BaseException) -> None: ...

    @abstractmethod
    def end(self) -> None:
        """스팬 종료 (여러 번 호출해도 한 번만 기록)"""


class TracingHandler(ABC):
    """스팬 생성 인터페이스"""

    @abstractmethod
    def start_span(
        self,
        name: str,
        span_type: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> TraceSpan: ...


# === 비활성 트레이싱 ===

class NoopSpan(TraceSpan):
    def set_input(self, value: Any) -> None:
        pass

    def set_output(self, value: Any) -> None:
        pass

    def set_metadata(self, metadata: Dict[str, Any]) -> None:
        pass

    def set_token_usage(self, input_tokens: int, output_tokens: int, total_tokens: int) -> None:
        pass

    def set_error(self, error: BaseException) -> None:
        pass

    def end(self) -> None:
        pass


class NoopTracingHandler(TracingHandler):
    """아무것도 기록하지 않는 트레이서"""

    _span = NoopSpan()

    def start_span(
        self,
        name: str,
        span_type: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> TraceSpan:
        return self._span


# === structlog 기반 트레이싱 ===

class RecordedSpan(TraceSpan):
    """structlog로 기록되는 스팬"""

    def __init__(self, handler: "StructlogTracingHandler", name: str, span_type: str, metadata: Dict[str, Any]):
        self._handler = handler
        self.name = name
        self.span_type = span_type
        self.metadata: Dict[str, Any] = dict(metadata)
        self.input: Any = None
        self.output: Any = None
        self.error: Optional[str] = None
        self.token_usage: Optional[Dict[str, int]] = None
        self.started_at = datetime.now(timezone.utc)
        self.duration_ms: Optional[float] = None
        self._start = time.perf_counter()
        self._ended = False

    def set_input(self, value: Any) -> None:
        self.input = value

    def set_output(self, value: Any) -> None:
        self.output = value

    def set_metadata(self, metadata: Dict[str, Any]) -> None:
        self.metadata.update(metadata)

    def set_token_usage(self, input_tokens: int, output_tokens: int, total_tokens: int) -> None:
        self.token_usage = {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": total_tokens,
        }

    def set_error(self, error: BaseException) -> None:
        self.error = str(error) or type(error).__name__

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self.duration_ms = (time.perf_counter() - self._start) * 1000
        self._handler._record(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.span_type,
            "started_at": self.started_at,
            "duration_ms": self.duration_ms,
            "metadata": self.metadata,
            "input": self.input,
            "output": self.output,
            "token_usage": self.token_usage,
            "error": self.error,
        }


class StructlogTracingHandler(TracingHandler):
    """스팬을 구조화 로그로 남기고 최근 기록을 메모리에 유지"""

    def __init__(self, max_spans: int = 1000):
        self.max_spans = max_spans
        self.spans: Deque[RecordedSpan] = deque(maxlen=max_spans)
        self.operation_times: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=max_spans))
        self.error_counts: Dict[str, int] = defaultdict(int)

    def start_span(
        self,
        name: str,
        span_type: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> TraceSpan:
        return RecordedSpan(self, name, span_type, metadata or {})

    def _record(self, span: RecordedSpan) -> None:
        self.spans.append(span)
        self.operation_times[span.name].append(span.duration_ms)

        if span.error:
            self.error_counts[span.name] += 1
            logger.warning(
                "트레이스 스팬 실패",
                span=span.name,
                span_type=span.span_type,
                duration_ms=round(span.duration_ms, 2),
                error=span.error
            )
            return

        logger.info(
            "트레이스 스팬 완료",
            span=span.name,
            span_type=span.span_type,
            duration_ms=round(span.duration_ms, 2),
            output=span.output,
            **({"total_tokens": span.token_usage["total_tokens"]} if span.token_usage else {})
        )

    # === 메트릭 분석 ===

    def tracing_get_metrics_summary(self) -> Dict[str, Any]:
        """스팬 이름별 소요 시간 요약

        Returns:
            작업별 count/average/p95 및 오류 수
        """
        operations = {}
        for name, times in self.operation_times.items():
            if not times:
                continue
            sorted_times = sorted(times)
            operations[name] = {
                "count": len(sorted_times),
                "average_ms": sum(sorted_times) / len(sorted_times),
                "max_ms": sorted_times[-1],
                "p95_ms": self._calculate_percentile(sorted_times, 95),
                "errors": self.error_counts.get(name, 0),
            }
        return {"operations": operations, "timestamp": datetime.now(timezone.utc)}

    def recent_spans(self, name: Optional[str] = None) -> List[RecordedSpan]:
        return [s for s in self.spans if name is None or s.name == name]

    def _calculate_percentile(self, sorted_list: List[float], percentile: int) -> float:
        """백분위수 계산"""
        if not sorted_list:
            return 0
        index = int((percentile / 100) * len(sorted_list))
        if index >= len(sorted_list):
            index = len(sorted_list) - 1
        return sorted_list[index]
