from fastapi import status


class ServiceError(Exception):
    """Raised by services; routers turn it into an HTTPException with the same status and message."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
