from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, TypeAlias

from bfx_stream.core.types import LifecycleKind

if TYPE_CHECKING:
    from bfx_stream.core.dto.io.messages import ProtocolInfoMessage


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True, eq=True, kw_only=True)
class ConnectionLifecycleEvent:
    """전송 세션 라이프사이클 이벤트 (Connected / Reconnected / Disconnected)"""

    kind: LifecycleKind
    cause: str | None = None
    # 연결 이후 몇 번째 (재)연결인지 (최초 연결 = 1)
    connection_seq: int = 0
    at: datetime = field(default_factory=_utc_now, compare=False)

    @classmethod
    def connected(cls, connection_seq: int = 1) -> ConnectionLifecycleEvent:
        return cls(kind=LifecycleKind.CONNECTED, connection_seq=connection_seq)

    @classmethod
    def reconnected(cls, cause: str | None, connection_seq: int = 0) -> ConnectionLifecycleEvent:
        return cls(kind=LifecycleKind.RECONNECTED, cause=cause, connection_seq=connection_seq)

    @classmethod
    def disconnected(cls, cause: str | None, connection_seq: int = 0) -> ConnectionLifecycleEvent:
        return cls(kind=LifecycleKind.DISCONNECTED, cause=cause, connection_seq=connection_seq)

    @property
    def triggers_resubscribe(self) -> bool:
        return self.kind in (LifecycleKind.CONNECTED, LifecycleKind.RECONNECTED)


# 재구독 트리거: 전송 계층(Reconnected) 또는 프로토콜 계층(info) 어느 쪽이든 동일한 전체 재전송
ResubscribeTrigger: TypeAlias = "ConnectionLifecycleEvent | ProtocolInfoMessage"
