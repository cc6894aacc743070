# seasonhub/core/audit.py
import json
import aio_pika
import logging
from seasonhub.core.config import settings

logger = logging.getLogger(__name__)

async def publish_audit_log(event_type: str, data: dict):
    """
    Publishes a season audit event to the RabbitMQ 'audit_queue'.
    One connection per publish; failures are logged and never break the caller.
    """
    try:
        connection = await aio_pika.connect_robust(
            host=settings.RABBITMQ_HOST,
            port=settings.RABBITMQ_PORT,
            login=settings.RABBITMQ_USER,
            password=settings.RABBITMQ_PASS
        )
        async with connection:
            channel = await connection.channel()
            queue = await channel.declare_queue("audit_queue", durable=True)

            message_body = {
                "event_type": event_type,
                "data": data
            }

            await channel.default_exchange.publish(
                aio_pika.Message(
                    body=json.dumps(message_body, default=str).encode(),  # default=str handles date/datetime
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT
                ),
                routing_key=queue.name,
            )
    except Exception as e:
        logger.error(f"Failed to publish audit log ({event_type}): {e}", exc_info=True)
