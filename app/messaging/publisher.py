import json
import logging
from typing import Dict, Optional

import pika

from app.config import (
    RABBITMQ_BOOKING_EXCHANGE,
    RABBITMQ_HOST,
    RABBITMQ_PASSWORD,
    RABBITMQ_PORT,
    RABBITMQ_USER,
)

logger = logging.getLogger(__name__)


class RabbitMQPublisher:
    """Publishes JSON events to the booking topic exchange"""

    def __init__(self, exchange: Optional[str] = None):
        self.host = RABBITMQ_HOST
        self.port = RABBITMQ_PORT
        self.user = RABBITMQ_USER
        self.password = RABBITMQ_PASSWORD
        self.exchange = exchange or RABBITMQ_BOOKING_EXCHANGE
        self.connection = None
        self.channel = None

    def connect(self):
        credentials = pika.PlainCredentials(self.user, self.password)
        parameters = pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=300
        )

        self.connection = pika.BlockingConnection(parameters)
        self.channel = self.connection.channel()

        self.channel.exchange_declare(
            exchange=self.exchange,
            exchange_type='topic',
            durable=True
        )

    def publish(self, routing_key: str, message: Dict):
        """Publish one message; opens the connection lazily."""
        if self.channel is None or self.channel.is_closed:
            self.connect()

        self.channel.basic_publish(
            exchange=self.exchange,
            routing_key=routing_key,
            body=json.dumps(message, default=str),
            properties=pika.BasicProperties(
                content_type='application/json',
                delivery_mode=2,
            ),
        )
        logger.info(f"Published {routing_key} to {self.exchange}")

    def close(self):
        if self.connection and self.connection.is_open:
            self.connection.close()
        self.connection = None
        self.channel = None
