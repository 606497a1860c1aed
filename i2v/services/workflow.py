"""Builds the opaque rendering payload handed to workers and the remote queue."""

from urllib.parse import urlencode

from i2v.models.entry import Entry


class WorkflowPayloadBuilder:
    def __init__(self, public_base_url: str, webhook_secret: str = ""):
        self.public_base_url = public_base_url.rstrip("/")
        self.webhook_secret = webhook_secret

    def callback_url(self, entry: Entry) -> str:
        url = f"{self.public_base_url}/api/v1/webhooks/entries/{entry.id}"
        if self.webhook_secret:
            url += "?" + urlencode({"token": self.webhook_secret})
        return url

    def build(self, entry: Entry) -> dict:
        inputs = {
            "entry_id": str(entry.id),
            "image_url": entry.original_image_url,
            "last_image_url": entry.last_image_url,
            "prompt": entry.prompt or "",
            **entry.workflow_inputs(),
            "callback_url": self.callback_url(entry),
        }
        return {"input": inputs}
