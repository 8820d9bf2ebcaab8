from __future__ import annotations

import threading

from bfx_stream.core.dto.internal.subscription import ChannelSubscription


class ChannelMap:
    """chanId → 채널 정보 매핑

    subscribed 이벤트로 채워지고, 연결이 바뀌면 chanId가 재할당되므로
    (재)연결마다 비웁니다.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[int, ChannelSubscription] = {}

    def register(self, subscription: ChannelSubscription) -> None:
        with self._lock:
            self._channels[subscription.chan_id] = subscription

    def get(self, chan_id: int) -> ChannelSubscription | None:
        with self._lock:
            return self._channels.get(chan_id)

    def remove(self, chan_id: int) -> ChannelSubscription | None:
        with self._lock:
            return self._channels.pop(chan_id, None)

    def clear(self) -> None:
        with self._lock:
            self._channels.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)
