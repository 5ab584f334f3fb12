# app/schemas/response_schemas.py
from pydantic import BaseModel
from typing import Generic, TypeVar, Optional, List

T = TypeVar("T")


class ResponseMessage(BaseModel, Generic[T]):
    message: str
    data: Optional[T] = None


class ListResponse(BaseModel, Generic[T]):
    message: str
    total: int
    data: List[T] = []
