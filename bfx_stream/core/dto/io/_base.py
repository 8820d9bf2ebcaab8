"""I/O 경계 DTO 기반 설정 모듈

요청(outbound)과 서버 메시지(inbound) 모두 불변 Pydantic v2 모델입니다.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

# ========================================
# ConfigDict (전역 설정)
# ========================================

# 구독 요청: 불변 + 해시 가능 (레지스트리 중복 판정에 사용)
REQUEST_CONFIG = ConfigDict(
    use_enum_values=True,  # Enum → 값 직렬화
    extra="forbid",  # 알 수 없는 필드 금지
    validate_default=True,
    str_strip_whitespace=True,
    frozen=True,
)

# 서버 메시지: 불변, 원본 배열 값은 느슨하게 수용 (int → float 등)
MESSAGE_CONFIG = ConfigDict(
    use_enum_values=True,
    extra="forbid",
    frozen=True,
    populate_by_name=True,
)


class BaseRequestDTO(BaseModel):
    """구독/제어 요청 공통 베이스 (불변)"""

    model_config = REQUEST_CONFIG


class BaseMessageDTO(BaseModel):
    """디코딩된 서버 메시지 공통 베이스 (불변)"""

    model_config = MESSAGE_CONFIG
