"""
Delivery of a customer package to an insurance company.

No real company endpoint is called: ``RandomDeliverySimulator`` decides the
outcome with a configurable success probability. A real integration implements
the same ``deliver`` signature and is passed to ``send_transmissions`` instead.
"""

from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

DEFAULT_SUCCESS_PROBABILITY = 0.9

SUCCESS_MESSAGE = "Transmission completed"
FAILURE_MESSAGE = "Transmission failed"


@dataclass(frozen=True)
class CompanyTarget:
    """Thread-safe copy of the company fields a delivery needs."""

    id: int
    name: str
    api_endpoint: str | None = None


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    message: str
    timestamp: datetime

    def as_response(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


class DeliverySimulator(Protocol):
    def deliver(self, company: CompanyTarget, payload: dict[str, Any]) -> DeliveryResult: ...


class RandomDeliverySimulator:
    """Succeeds with probability ``success_probability`` (one draw per delivery)."""

    def __init__(
        self,
        success_probability: float = DEFAULT_SUCCESS_PROBABILITY,
        latency_seconds: float = 0.0,
        rng: random.Random | None = None,
    ):
        if not 0.0 <= success_probability <= 1.0:
            raise ValueError("success_probability must be between 0 and 1")
        self.success_probability = success_probability
        self.latency_seconds = max(0.0, latency_seconds)
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    def _draw(self) -> float:
        with self._lock:
            return self._rng.random()

    def deliver(self, company: CompanyTarget, payload: dict[str, Any]) -> DeliveryResult:
        if self.latency_seconds:
            time.sleep(self.latency_seconds)
        success = self._draw() < self.success_probability
        return DeliveryResult(
            success=success,
            message=SUCCESS_MESSAGE if success else FAILURE_MESSAGE,
            timestamp=datetime.utcnow(),
        )


def simulator_from_config(config: dict) -> RandomDeliverySimulator:
    return RandomDeliverySimulator(
        success_probability=float(config.get("TRANSMISSION_SUCCESS_PROBABILITY", DEFAULT_SUCCESS_PROBABILITY)),
        latency_seconds=float(config.get("TRANSMISSION_SIMULATED_LATENCY", 0.0)),
    )
