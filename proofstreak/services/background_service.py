# proofstreak/services/background_service.py
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable


class BackgroundRunner:
    """
    요청 응답을 기다리게 하지 않아도 되는 작업(예: 놓친 목표 검사)을 백그라운드 스레드에서 실행합니다.
    호출자는 반환된 Future를 기다리지 않아도 되며, 작업 중 발생한 예외는 여기서 로그로 남깁니다.
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="proofstreak-bg")

    def submit(self, task_name: str, fn: Callable[..., Any], *args, **kwargs) -> Future:
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: self._log_failure(task_name, f))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _log_failure(task_name: str, future: Future) -> None:
        if future.cancelled():
            logging.warning(f"백그라운드 작업이 취소되었습니다: {task_name}")
            return
        error = future.exception()
        if error is not None:
            logging.error(f"백그라운드 작업 실패: {task_name} - {error}", exc_info=error)
