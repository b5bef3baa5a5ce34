"""Typed report-generation errors and their user-facing notifications."""

from __future__ import annotations

from enum import StrEnum

from spaceplan.models.contracts import Notification

_DEFAULT_TITLE = "오류 발생"
_DEFAULT_MESSAGE = "리포트 생성 중 오류가 발생했습니다"


class GenerationErrorKind(StrEnum):
    AUTH_ERROR = "auth_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    BAD_REQUEST = "bad_request"
    MODEL_NOT_FOUND = "model_not_found"
    NETWORK_ERROR = "network_error"
    UPSTREAM_ERROR = "upstream_error"
    MALFORMED_RESPONSE = "malformed_response"


class GenerationError(Exception):
    """Raised by the text-generation boundary; carries an HTTP-like status where known."""

    def __init__(
        self, kind: GenerationErrorKind, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in (
            GenerationErrorKind.QUOTA_EXCEEDED,
            GenerationErrorKind.NETWORK_ERROR,
            GenerationErrorKind.UPSTREAM_ERROR,
        )


def _contains(message: str, *needles: str) -> bool:
    lowered = message.lower()
    return any(n.lower() in lowered for n in needles)


def classify_error(exc: BaseException) -> Notification:
    """Map a failed report generation to a (title, message) notification."""
    message = str(exc)
    status = getattr(exc, "status_code", None)
    kind = getattr(exc, "kind", None)

    if status == 401 or kind == GenerationErrorKind.AUTH_ERROR or _contains(
        message, "API 키", "Invalid API key"
    ):
        return Notification(title="API 키 오류", message="API 키 설정을 확인해주세요.")
    if status == 429 or kind == GenerationErrorKind.QUOTA_EXCEEDED or _contains(
        message, "할당량", "quota", "rate limit"
    ):
        return Notification(
            title="서비스 사용량 초과",
            message="일시적으로 서비스 사용량을 초과했습니다. 잠시 후 다시 시도해주세요.",
        )
    if status == 400 or kind == GenerationErrorKind.BAD_REQUEST:
        return Notification(title="요청 오류", message=message or "요청 형식이 올바르지 않습니다.")
    if status == 404 or kind == GenerationErrorKind.MODEL_NOT_FOUND:
        return Notification(
            title="모델을 찾을 수 없음",
            message="사용 중인 모델을 찾을 수 없습니다. 모델 이름을 확인해주세요.",
        )
    if (
        kind == GenerationErrorKind.NETWORK_ERROR
        or isinstance(exc, ConnectionError)
        or _contains(message, "네트워크", "fetch", "NetworkError", "connection")
    ):
        return Notification(title="네트워크 오류", message="인터넷 연결을 확인해주세요.")
    return Notification(title=_DEFAULT_TITLE, message=message or _DEFAULT_MESSAGE)
