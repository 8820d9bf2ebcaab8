from __future__ import annotations

import threading
from typing import Iterable, Iterator

from bfx_stream.core.dto.io.requests import BaseSubscribeRequest


class SubscriptionRegistry:
    """활성화할 구독 요청의 선언적 목록 (순수 데이터, I/O 없음)

    - 삽입 순서 유지 → 재연결마다 같은 순서로 재전송
    - 동일 요청(tag, key, parameters) 중복 추가는 무시 (에러 아님)
    - 읽기/쓰기는 락으로 상호 배제, all()은 불변 스냅샷 반환
    """

    def __init__(self, requests: Iterable[BaseSubscribeRequest] | None = None) -> None:
        self._lock = threading.Lock()
        self._requests: list[BaseSubscribeRequest] = []
        self._index: set[BaseSubscribeRequest] = set()
        if requests is not None:
            self.extend(requests)

    def add(self, request: BaseSubscribeRequest) -> bool:
        """요청 추가. 새로 추가되면 True, 이미 있으면 False"""
        with self._lock:
            if request in self._index:
                return False
            self._index.add(request)
            self._requests.append(request)
            return True

    def extend(self, requests: Iterable[BaseSubscribeRequest]) -> int:
        """여러 요청 추가 후 실제로 추가된 개수 반환"""
        return sum(1 for request in requests if self.add(request))

    def all(self) -> tuple[BaseSubscribeRequest, ...]:
        with self._lock:
            return tuple(self._requests)

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def __contains__(self, request: object) -> bool:
        with self._lock:
            return request in self._index

    def __iter__(self) -> Iterator[BaseSubscribeRequest]:
        return iter(self.all())
