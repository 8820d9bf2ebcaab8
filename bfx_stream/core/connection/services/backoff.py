from __future__ import annotations

import random

from bfx_stream.core.dto.internal.common import ConnectionPolicyDomain

# 상한에 충분히 도달하는 지수 (float 오버플로 방지)
_MAX_EXPONENT = 64


def compute_next_backoff(
    policy: ConnectionPolicyDomain, attempt: int, *, rng: random.Random | None = None
) -> float:
    """재연결 대기 시간(초) 계산: 지수 증가, max_backoff 상한, ±jitter 비율.

    Args:
        policy: 재연결 정책
        attempt: 연속 실패 횟수 - 1 (첫 재시도 = 0)
        rng: 테스트용 난수 생성기

    Examples:
        >>> p = ConnectionPolicyDomain(initial_backoff=1.0, backoff_multiplier=2.0, jitter=0.0)
        >>> [compute_next_backoff(p, n) for n in range(4)]
        [1.0, 2.0, 4.0, 8.0]
    """
    exponent = min(max(0, attempt), _MAX_EXPONENT)
    try:
        delay = policy.initial_backoff * (policy.backoff_multiplier**exponent)
    except OverflowError:
        delay = policy.max_backoff
    delay = min(delay, policy.max_backoff)
    if policy.jitter <= 0:
        return delay
    spread = delay * policy.jitter
    return max(0.0, delay + (rng or random).uniform(-spread, spread))


def attempts_exhausted(policy: ConnectionPolicyDomain, attempt: int) -> bool:
    """연속 실패 횟수가 한도에 도달했는지 (0 = 무제한)"""
    limit = policy.reconnect_max_attempts
    return limit > 0 and attempt >= limit
