"""
Per-client rate limiting middleware against brute force and request floods.

Every request counts against the global rule; login, registration and order
placement have their own, much tighter rules on top. Counters are in-memory
sliding windows keyed by client IP, so limits are per process.
"""
import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, FrozenSet, List, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pharmacy_api.core.config import settings

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})
CLEANUP_INTERVAL_SECONDS = 300


@dataclass(frozen=True)
class Rule:
    name: str
    limit: int
    window: int  # seconds
    methods: FrozenSet[str] = frozenset()  # empty: any method
    paths: FrozenSet[str] = frozenset()  # empty: any path

    def applies_to(self, method: str, path: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        return not self.paths or path.rstrip("/") in self.paths


def default_rules() -> List[Rule]:
    return [
        Rule("global", settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS),
        Rule("login", settings.LOGIN_RATE_LIMIT, 15 * 60, frozenset({"POST"}),
             frozenset({"/api/auth/login", "/api/auth/admin/login"})),
        Rule("register", settings.REGISTER_RATE_LIMIT, 60 * 60, frozenset({"POST"}),
             frozenset({"/api/auth/register"})),
        Rule("orders", settings.ORDER_RATE_LIMIT, 60 * 60, frozenset({"POST"}),
             frozenset({"/api/orders", "/api/orders/checkout"})),
    ]


class RateLimiter:
    """Sliding-window counters, one deque of hit times per (rule, client)."""

    def __init__(self, rules: List[Rule]):
        self.rules = rules
        self.hits: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)
        self.last_cleanup = time.time()

    def hit(self, client_id: str, method: str, path: str) -> Tuple[Optional[Rule], int]:
        """
        Record a request against every matching rule.

        Returns:
            (rule that refused the request or None, requests left under the global rule)
        """
        now = time.time()
        if now - self.last_cleanup > CLEANUP_INTERVAL_SECONDS:
            self._cleanup(now)

        matching = [r for r in self.rules if r.applies_to(method, path)]
        for rule in matching:
            window = self._window(rule, client_id, now)
            if len(window) >= rule.limit:
                return rule, 0

        remaining = 0
        for rule in matching:
            window = self.hits[(rule.name, client_id)]
            window.append(now)
            if rule is self.rules[0]:
                remaining = rule.limit - len(window)
        return None, remaining

    def reset(self):
        self.hits.clear()

    def _window(self, rule: Rule, client_id: str, now: float) -> Deque[float]:
        window = self.hits[(rule.name, client_id)]
        cutoff = now - rule.window
        while window and window[0] <= cutoff:
            window.popleft()
        return window

    def _cleanup(self, now: float):
        windows = {rule.name: rule.window for rule in self.rules}
        for key in list(self.hits):
            window = self.hits[key]
            cutoff = now - windows.get(key[0], 0)
            while window and window[0] <= cutoff:
                window.popleft()
            if not window:
                del self.hits[key]
        self.last_cleanup = now
        logger.info(f"Rate limiter cleanup: {len(self.hits)} active counters")


rate_limiter = RateLimiter(default_rules())


class RateLimitMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        client_id = request.client.host if request.client else "unknown"
        refused, remaining = rate_limiter.hit(client_id, request.method, request.url.path)

        if refused:
            logger.warning(
                f"Rate limit '{refused.name}' exceeded for {client_id} on {request.method} {request.url.path}"
            )
            # Raised exceptions bypass the app's handlers inside BaseHTTPMiddleware
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Too many requests, please try again later."},
                headers={
                    "Retry-After": str(refused.window),
                    "X-RateLimit-Limit": str(refused.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rate_limiter.rules[0].limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
