from __future__ import annotations

import logging
import queue
import sys
import threading
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any

from bfx_stream.config.settings import logging_settings


def ensure_parent_dir(file_path: str) -> None:
    """
    주어진 파일 경로의 상위 폴더가 없으면 생성합니다.
    (파일 자체는 핸들러가 생성하도록 둡니다.)

    Args:
        file_path (str): 파일 경로
    """
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)


class PipelineLogger:
    """
    스트림 클라이언트용 로깅 시스템
    콘솔 + 일 단위 로테이션 파일, QueueListener 기반 비차단 기록

    코어 컴포넌트는 이 로거를 생성자 인자로 주입받고,
    주입이 없을 때만 모듈 로거를 사용합니다.
    """

    _default_level = logging.getLevelName(logging_settings.level.upper())
    _instances: list[PipelineLogger] = []
    _instances_lock = threading.Lock()

    @classmethod
    def get_logger(cls, name: str, component: str | None = None, **kwargs) -> PipelineLogger:
        """
        로거 인스턴스를 반환하는 간단한 팩토리 메서드.
        표준 logging.getLogger가 이름 단위로 사실상 싱글톤이므로
        별도 레지스트리 없이 인스턴스를 생성합니다.
        """
        return cls(name, component, **kwargs)

    @classmethod
    def shutdown_all(cls) -> None:
        """생성된 모든 로거의 리스너를 정지합니다 (프로세스 종료 시 1회)."""
        with cls._instances_lock:
            instances = list(cls._instances)
            cls._instances.clear()
        for instance in instances:
            instance.close()

    def __init__(
        self,
        name: str,
        component: str | None = None,
        level: int | None = None,
        log_to_file: bool | None = None,
        log_to_console: bool = True,
        log_dir: str | None = None,
        rotation: str | None = None,
        backup_count: int | None = None,
    ):
        """
        로거 초기화

        Args:
            name: 로거 이름
            component: 컴포넌트 이름
            level: 로깅 레벨
            log_to_file: 파일에 로깅 여부 (기본: LOG_TO_FILE)
            log_to_console: 콘솔에 로깅 여부
            log_dir: 로그 디렉토리 (기본: LOG_DIR)
            rotation: 로그 로테이션 주기 (기본: LOG_ROTATION)
            backup_count: 보관 파일 수 (기본: LOG_BACKUP_COUNT)
        """
        self.name = name
        self.component = component
        self.level = level or self._default_level
        self.log_to_file = logging_settings.to_file if log_to_file is None else log_to_file
        self.log_to_console = log_to_console
        self.log_dir = log_dir or logging_settings.dir
        self.rotation = rotation or logging_settings.rotation
        self.backup_count = (
            logging_settings.backup_count if backup_count is None else backup_count
        )

        # 무제한 버퍼 (queue.Full 방지)
        self.log_queue: queue.Queue = queue.Queue()
        self._closed = False

        self._setup_logger()

        with self._instances_lock:
            self._instances.append(self)

    def _setup_logger(self) -> None:
        """
        로거, 핸들러, 포맷터 설정
        """
        self.logger_name = f"{self.name}.{self.component}" if self.component else self.name
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(self.level)
        self.logger.propagate = False

        # 기존 핸들러 제거
        if self.logger.hasHandlers():
            self.logger.handlers.clear()

        self.formatter = logging.Formatter(
            "[%(asctime)s %(levelname).3s] %(name)s [%(component)s] %(message)s"
        )

        handlers: list[logging.Handler] = []

        if self.log_to_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(self.formatter)
            handlers.append(console)

        if self.log_to_file:
            log_filename = self._get_log_filename()
            ensure_parent_dir(log_filename)

            # 날짜 접미사는 TimedRotatingFileHandler가 로테이션 시 붙입니다.
            file_handler = TimedRotatingFileHandler(
                filename=log_filename,
                when=self.rotation,
                backupCount=self.backup_count,
                encoding="utf-8",
                delay=True,
            )
            file_handler.setFormatter(self.formatter)
            handlers.append(file_handler)

        self.queue_handler = QueueHandler(self.log_queue)
        self.logger.addHandler(self.queue_handler)

        self.listener = QueueListener(self.log_queue, *handlers, respect_handler_level=True)
        self.listener.start()

    def _get_log_filename(self) -> str:
        """
        로그 파일 이름 생성 ({log_dir}/{component}/verbose.log 형태)
        """
        component_part = f"{self.component}/" if self.component else ""
        return f"{self.log_dir}/{component_part}verbose.log"

    def _process_message(self, level: int, msg: str, extra: dict[str, Any] | None = None) -> None:
        """
        메시지 처리 및 로깅
        """
        log_extra = {"component": self.component or "main"}

        # exc_info, stack_info는 logger.log()의 파라미터로 추출
        exc_info_param = None
        stack_info_param = False

        if extra:
            exc_info_param = extra.pop("exc_info", None)
            stack_info_param = bool(extra.pop("stack_info", False))

            # 'extra' 키가 있으면 그 내용을 풀어서 병합
            if "extra" in extra:
                nested_extra = extra.pop("extra")
                if isinstance(nested_extra, dict):
                    log_extra.update(nested_extra)

            log_extra.update(extra)

        # LogRecord 예약 속성과 충돌하는 키는 접두사를 붙여 보존
        safe_extra = {
            (f"ctx_{key}" if key in _RESERVED_RECORD_KEYS else key): value
            for key, value in log_extra.items()
        }

        self.logger.log(
            level, msg, exc_info=exc_info_param, stack_info=stack_info_param, extra=safe_extra
        )

    def debug(self, msg: str, **kwargs) -> None:
        self._process_message(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs) -> None:
        self._process_message(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs) -> None:
        self._process_message(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs) -> None:
        self._process_message(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs) -> None:
        self._process_message(logging.CRITICAL, msg, kwargs)

    def close(self) -> None:
        """
        리소스 정리 (중복 호출 안전)
        """
        if self._closed:
            return
        self._closed = True
        self.listener.stop()


_RESERVED_RECORD_KEYS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}
