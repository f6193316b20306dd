"""Common schema patterns."""
from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Simple message response."""
    message: str
