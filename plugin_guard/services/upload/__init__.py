from .pending_queue import PendingUploadQueue
from .upload_client import UploadClient

__all__ = ["PendingUploadQueue", "UploadClient"]
