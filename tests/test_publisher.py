import json
from unittest.mock import MagicMock, patch

from app.messaging.publisher import RabbitMQPublisher


@patch("app.messaging.publisher.pika.BlockingConnection")
def test_publish_connects_lazily(mock_connection):
    channel = MagicMock()
    channel.is_closed = False
    mock_connection.return_value.channel.return_value = channel

    publisher = RabbitMQPublisher(exchange="booking.test")
    publisher.publish("booking.confirmed", {"event": "booking.confirmed", "data": {"booking_id": 7}})
    publisher.publish("booking.cancelled", {"event": "booking.cancelled", "data": {"booking_id": 7}})

    mock_connection.assert_called_once()
    channel.exchange_declare.assert_called_once_with(exchange="booking.test", exchange_type="topic", durable=True)
    assert channel.basic_publish.call_count == 2

    kwargs = channel.basic_publish.call_args_list[0].kwargs
    assert kwargs["routing_key"] == "booking.confirmed"
    assert json.loads(kwargs["body"])["data"]["booking_id"] == 7
    assert kwargs["properties"].delivery_mode == 2


@patch("app.messaging.publisher.pika.BlockingConnection")
def test_close_resets_connection(mock_connection):
    mock_connection.return_value.is_open = True
    publisher = RabbitMQPublisher()
    publisher.connect()

    publisher.close()

    mock_connection.return_value.close.assert_called_once()
    assert publisher.channel is None


def test_close_without_connection_is_noop():
    publisher = RabbitMQPublisher()
    publisher.close()
    assert publisher.connection is None
