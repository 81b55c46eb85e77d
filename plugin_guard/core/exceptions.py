# plugin_guard/core/exceptions.py

class ScanAlreadyRunningError(Exception):
    """Raised when a scan cycle is requested while another one is active."""
    def __init__(self, started_at=None):
        self.started_at = started_at
        message = "A scan cycle is already running"
        if started_at is not None:
            message += f" (started {started_at.isoformat()})"
        super().__init__(message)
