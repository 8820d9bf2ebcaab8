from __future__ import annotations

from dataclasses import dataclass

from bfx_stream.core.types import ErrorCategory, ExceptionGroup, RuleKind


@dataclass(slots=True, frozen=True, eq=True, repr=False, match_args=False, kw_only=True)
class ConnectionScopeDomain:
    """연결 스코프 (세션 이름 + 엔드포인트)"""

    exchange: str
    url: str

    def observed_key(self, component: str) -> str:
        return f"{self.exchange}/{component}"


@dataclass(slots=True, eq=False, repr=False, match_args=False, kw_only=True)
class ConnectionPolicyDomain:
    """재연결/헬스체크 정책 (가변: 하트비트 설정은 런타임에 조정 가능)"""

    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.2
    heartbeat_interval: float = 30.0
    heartbeat_timeout: float = 10.0
    receive_idle_timeout: float = 90.0
    reconnect_max_attempts: int = 0


@dataclass(slots=True, frozen=True, eq=True, repr=False, match_args=False, kw_only=True)
class RuleDomain:
    """예외 분류 규칙 (kind 집합 + 예외 타입 → 분류 결과)"""

    kinds: RuleKind
    exc: ExceptionGroup
    result: ErrorCategory
