"""带指数退避的单次能力调用执行器。

ResilientExecutor 只负责“执行 → 失败则等待后重试”，不接触会话状态：
调用方根据返回的 ExecutionOutcome 决定追加正常回复还是兜底文案，
因此无论重试多少次，兜底逻辑都只会执行一次。
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from vision_core.domain.exceptions import BusinessError
from vision_core.domain.models import RetryState
from vision_core.infrastructure.logging.logger import log_event

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000


@dataclass
class ExecutionOutcome(Generic[T]):
    """一次 run() 的最终结果；失败以值的形式返回，不会抛出。"""

    ok: bool
    value: Optional[T] = None
    attempts: int = 0
    error: Optional[BaseException] = None


class ResilientExecutor:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep

    async def run(self, call: Callable[[], Awaitable[T]], *, label: str = "call") -> ExecutionOutcome[T]:
        """执行 call，最多尝试 max_attempts 次。

        Args:
            call: 每次调用都会新建一次网络请求的协程工厂。
            label: 日志中的能力名。

        Returns:
            ExecutionOutcome：成功时 ok=True 且携带 value；
            全部尝试失败时 ok=False，error 为最后一次异常。
        """

        state = RetryState(max_attempts=self._max_attempts, base_delay_ms=self._base_delay_ms)
        log_ctx = {"capability": label}
        while True:
            try:
                value = await call()
            except Exception as exc:  # noqa: BLE001 - 任何异常都视为本次尝试失败
                code = exc.code if isinstance(exc, BusinessError) else type(exc).__name__
                if state.is_final:
                    log_event(
                        logging.ERROR,
                        "Capability call failed, retries exhausted",
                        log_ctx,
                        attempts=state.attempt + 1,
                        error_code=code,
                    )
                    return ExecutionOutcome(ok=False, attempts=state.attempt + 1, error=exc)
                delay = state.next_delay_seconds()
                log_event(
                    logging.WARNING,
                    "Capability call failed, retrying",
                    log_ctx,
                    attempt=state.attempt + 1,
                    delay_seconds=delay,
                    error_code=code,
                )
                # 会话被销毁时这里会收到 CancelledError，直接向上传播
                await self._sleep(delay)
                state.attempt += 1
                continue
            return ExecutionOutcome(ok=True, value=value, attempts=state.attempt + 1)
