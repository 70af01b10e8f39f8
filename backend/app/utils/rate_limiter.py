"""
In-memory rate limiting for /auth and /api/essays.

Sliding window per client IP. With several workers each process keeps its own
window; use a shared store (Redis) if that matters.
"""
import time
import logging

from fastapi import HTTPException, Request

from app.config import settings

logger = logging.getLogger(__name__)


class InMemoryRateLimiter:
    def __init__(self, max_requests: int = 60, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._requests: dict[str, list[float]] = {}

    def check(self, key: str) -> bool:
        """True if the request is allowed (and records it), False if the key is over the limit."""
        now = time.time()
        cutoff = now - self.window_seconds
        recent = [t for t in self._requests.get(key, ()) if t > cutoff]
        if len(recent) >= self.max_requests:
            self._requests[key] = recent
            return False
        recent.append(now)
        self._requests[key] = recent
        self._prune(cutoff)
        return True

    def _prune(self, cutoff: float) -> None:
        """Drop keys whose whole window has expired."""
        for key in [k for k, times in self._requests.items() if not times or times[-1] <= cutoff]:
            del self._requests[key]

    def __len__(self) -> int:
        return len(self._requests)

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._requests.clear()
        else:
            self._requests.pop(key, None)


api_rate_limiter = InMemoryRateLimiter(max_requests=settings.rate_limit_per_minute, window_seconds=60)


async def check_rate_limit(request: Request) -> None:
    """FastAPI dependency: 429 when the client IP exceeds the per-minute limit."""
    client_ip = request.client.host if request.client else "unknown"
    if not api_rate_limiter.check(client_ip):
        logger.warning(f"Rate limit exceeded for {client_ip}")
        raise HTTPException(
            status_code=429,
            detail="Muitas requisições desta API. Por favor, tente novamente mais tarde.",
            headers={"Retry-After": str(api_rate_limiter.window_seconds)},
        )
