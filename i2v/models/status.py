"""Internal entry status vocabulary."""

UPLOADED = "uploaded"
IN_QUEUE = "in_queue"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
DELETED = "deleted"

ACTIVE_STATUSES = (IN_QUEUE, PROCESSING)
TERMINAL_STATUSES = (COMPLETED, FAILED)

# Statuses that consume a daily quota slot regardless of artifact state
QUOTA_STATUSES = (COMPLETED, IN_QUEUE, PROCESSING)
