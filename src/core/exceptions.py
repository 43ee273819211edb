"""앱 전역 커스텀 예외 클래스.

AppException을 상속하면 전역 핸들러(error_handlers.py)가 자동으로
{"error_code": "...", "message": "..."} 형식의 JSON 응답을 생성한다.

retryable=True 인 예외는 일시적인 인프라 장애를 뜻한다.
컨슈머는 이 플래그를 보고 메시지를 재전달할지, dead-letter로 보낼지 결정한다.
"""


class AppException(Exception):
    """앱 전역 베이스 예외.

    서브클래스에서 status_code, error_code, message를 클래스 변수로 정의하면
    전역 핸들러가 해당 값을 읽어 HTTP 응답을 생성한다.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "서버 내부 오류가 발생했습니다"
    retryable: bool = False

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


# --- 검증 (재시도하지 않음) ---


class InvalidImageId(AppException):
    status_code = 400
    error_code = "INVALID_IMAGE_ID"
    message = "올바르지 않은 이미지 ID입니다"


class InvalidAction(AppException):
    status_code = 400
    error_code = "INVALID_ACTION"
    message = "지원하지 않거나 파라미터가 잘못된 작업입니다"


class InvalidUpload(AppException):
    status_code = 400
    error_code = "INVALID_UPLOAD"
    message = "업로드 요청이 올바르지 않습니다"


class UploadTooLarge(AppException):
    status_code = 413
    error_code = "UPLOAD_TOO_LARGE"
    message = "업로드 파일이 허용 크기를 초과했습니다"


class InvalidJobPayload(AppException):
    status_code = 400
    error_code = "INVALID_JOB_PAYLOAD"
    message = "큐 메시지를 해석할 수 없습니다"


# --- 조회 ---


class ImageNotFound(AppException):
    status_code = 404
    error_code = "IMAGE_NOT_FOUND"
    message = "이미지를 찾을 수 없습니다"


# --- 영구적인 처리 실패 ---


class ImageDecodeError(AppException):
    status_code = 422
    error_code = "IMAGE_DECODE_ERROR"
    message = "이미지를 디코딩할 수 없습니다"


# --- 일시적인 인프라 장애 (재시도 대상) ---


class StorageError(AppException):
    status_code = 500
    error_code = "STORAGE_ERROR"
    message = "파일 저장소 오류가 발생했습니다"
    retryable = True


class ArtifactNotFound(StorageError):
    error_code = "ARTIFACT_NOT_FOUND"
    message = "저장소에 파일이 없습니다"
    # 없는 파일은 다시 읽어도 없다
    retryable = False


class PersistenceError(AppException):
    status_code = 500
    error_code = "PERSISTENCE_ERROR"
    message = "데이터베이스 오류가 발생했습니다"
    retryable = True


class BrokerError(AppException):
    status_code = 503
    error_code = "BROKER_ERROR"
    message = "메시지 큐 오류가 발생했습니다"
    retryable = True


class QueueUnavailable(BrokerError):
    error_code = "QUEUE_UNAVAILABLE"
    message = "작업을 큐에 등록하지 못했습니다"
