"""In-process request counters exposed at ``/debug/vars``."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any, Dict


class RequestMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.requests_received = 0
        self.responses_sent = 0
        self.processing_time_us = 0
        self.responses_by_status: Counter[str] = Counter()

    def request_started(self) -> None:
        with self._lock:
            self.requests_received += 1

    def response_sent(self, status_code: int, duration_us: int) -> None:
        with self._lock:
            self.responses_sent += 1
            self.processing_time_us += duration_us
            self.responses_by_status[str(status_code)] += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_requests_received": self.requests_received,
                "total_responses_sent": self.responses_sent,
                "total_processing_time_us": self.processing_time_us,
                "total_responses_sent_by_status": dict(self.responses_by_status),
            }
