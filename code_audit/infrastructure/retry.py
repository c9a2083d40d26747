"""
Async retry decorator with exponential backoff.

Used by the Ollama client for transient HTTP failures only.
"""

import asyncio
import logging
import random
from functools import wraps
from typing import Callable, Optional, Tuple, Type


logger = logging.getLogger(__name__)


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 0.5,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    jitter: float = 0.0,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
):
    """
    Асинхронный декоратор с экспоненциальной задержкой.

    Задержка перед попыткой n+1 равна base_delay * 2^(n-1) (+ случайный jitter).

    Args:
        max_attempts: Максимум попыток (включая первую)
        base_delay: Начальная задержка между попытками, секунды
        exceptions: Кортеж исключений, при которых повторяем
        jitter: Добавочный случайный шум, секунды
        on_retry: Колбэк (attempt, exception, delay) перед ожиданием
    """
    max_attempts = max(1, max_attempts)

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 1
            delay = base_delay

            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    if attempt >= max_attempts:
                        raise

                    wait = delay + (random.uniform(0, jitter) if jitter else 0.0)
                    if on_retry is not None:
                        on_retry(attempt, exc, wait)
                    else:
                        logger.warning(
                            f"{func.__name__} failed (attempt {attempt}/{max_attempts}), "
                            f"retrying in {wait:.2f}s: {exc}"
                        )

                    await asyncio.sleep(wait)
                    attempt += 1
                    delay *= 2

        return wrapper

    return decorator
