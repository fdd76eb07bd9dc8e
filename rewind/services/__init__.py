"""서비스 레이어 패키지 초기화 모듈입니다."""

from rewind.services import (
    version_service,
    approach_service,
    reconstruction_service,
    lock_service,
    event_service,
    recorder_service,
    rewind_service,
)
