"""Amazon SQS queue accessed through a boto3 client."""

from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from cloudbox.queue.base import QueueError, QueueMessage


class SqsQueue:
    """Thin adapter over ``receive_message`` / ``delete_message``."""

    def __init__(
        self,
        client,
        *,
        queue_url: str,
        visibility_timeout_seconds: int | None = None,
    ) -> None:
        self.client = client
        self.queue_url = queue_url
        self.visibility_timeout_seconds = visibility_timeout_seconds

    def receive(self, *, max_messages: int = 1, wait_seconds: int = 20) -> list[QueueMessage]:
        params: dict[str, object] = {
            "QueueUrl": self.queue_url,
            "AttributeNames": ["All"],
            "MaxNumberOfMessages": max_messages,
            "WaitTimeSeconds": wait_seconds,
        }
        if self.visibility_timeout_seconds is not None:
            params["VisibilityTimeout"] = self.visibility_timeout_seconds
        try:
            response = self.client.receive_message(**params)
        except (BotoCoreError, ClientError) as error:
            raise QueueError(f"SQS receive failed for {self.queue_url}: {error}") from error

        messages: list[QueueMessage] = []
        for raw in response.get("Messages", []):
            attributes = raw.get("Attributes", {})
            messages.append(
                QueueMessage(
                    message_id=raw["MessageId"],
                    receipt_handle=raw["ReceiptHandle"],
                    body=raw.get("Body", ""),
                    receive_count=int(attributes.get("ApproximateReceiveCount", "1")),
                ),
            )
        return messages

    def delete(self, receipt_handle: str) -> None:
        try:
            self.client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as error:
            raise QueueError(f"SQS delete failed for {self.queue_url}: {error}") from error

    def send(self, body: str) -> str:
        try:
            response = self.client.send_message(QueueUrl=self.queue_url, MessageBody=body)
        except (BotoCoreError, ClientError) as error:
            raise QueueError(f"SQS send failed for {self.queue_url}: {error}") from error
        return str(response["MessageId"])
