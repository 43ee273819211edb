from loguru import logger

from broker.base import Broker
from core.exceptions import BrokerError, QueueUnavailable
from model.image import ImageRecord, ImageSchema
from utility.retry import RetryStrategy, retry_call


class ImageProducer:
    """이미지 레코드를 JSON으로 직렬화해 큐에 넣는다.

    메시지 key는 이미지 ID 문자열이다. 같은 ID의 메시지끼리 순서가 보장된다.
    """

    def __init__(self, broker: Broker, strategy: RetryStrategy):
        self.broker = broker
        self.strategy = strategy
        self._log = logger.bind(component="producer")

    def enqueue(self, record: ImageRecord) -> int:
        payload = ImageSchema.from_record(record).model_dump_json()
        key = str(record.id)

        try:
            offset = retry_call(
                lambda: self.broker.send(key, payload),
                self.strategy,
                retry_on=(BrokerError,),
                label="enqueue",
            )
        except BrokerError as e:
            self._log.error(f"enqueue failed for {key}: {e}")
            raise QueueUnavailable(f"작업을 큐에 등록하지 못했습니다: {key}") from e

        self._log.info(f"enqueued {key} (offset={offset}, action={record.action})")
        return offset
