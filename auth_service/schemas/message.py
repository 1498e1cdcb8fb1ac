from typing import Generic, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class Message(BaseModel):
    """Generic message response schema"""
    message: str


class SuccessResponse(BaseModel, Generic[DataT]):
    """Envelope wrapping every successful response"""
    success: bool = True
    data: DataT


def ok(data) -> dict:
    return {"success": True, "data": data}
