from .client import Client
from .config import SyncOptions
from .exceptions import ApiError, SetupError, UploadCancelled, UploadRejected
from .models import RunSummary

__all__ = ["Client", "SyncOptions", "RunSummary", "ApiError", "SetupError", "UploadCancelled", "UploadRejected"]
