# proofstreak/services/cache_service.py
import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """
    유효 시간(TTL)이 있는 프로세스 내 캐시.

    - 시계(clock)를 주입받으므로 테스트에서 시간 경과를 흉내낼 수 있습니다.
    - 같은 키를 동시에 여러 스레드가 요청하면 loader는 한 번만 실행되고,
      나머지 요청은 진행 중인 결과(Future)를 함께 기다립니다.
    - 인스턴스는 create_app()에서 한 번 만들어 필요한 서비스에 주입합니다.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic, name: str = "cache"):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.name = name
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self._pending: Dict[Hashable, Future] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        """유효한 캐시 값이 있으면 반환하고, 없거나 만료되었으면 None을 반환합니다."""
        with self._lock:
            return self._get_fresh(key)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        with self._lock:
            cached = self._get_fresh(key)
            if cached is not None:
                return cached

            future = self._pending.get(key)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._pending[key] = future

        if not is_owner:
            return future.result()

        try:
            value = loader()
        except Exception as e:
            with self._lock:
                self._pending.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            if value is not None:
                self._entries[key] = (value, self.clock())
            self._pending.pop(key, None)
        future.set_result(value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._pending.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._pending.clear()
        logging.info(f"{self.name} 캐시를 비웠습니다.")

    def _get_fresh(self, key: Hashable) -> Optional[Any]:
        # 호출자가 self._lock을 잡고 있어야 합니다.
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self.clock() - stored_at < self.ttl_seconds:
            return value
        del self._entries[key]
        return None
