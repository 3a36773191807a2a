from pydantic import BaseModel


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict = {}


class ErrorResponse(BaseModel):
    error: ErrorDetail


def error_detail(code: str, message: str) -> dict:
    """Body for ``HTTPException(detail=...)`` in the shared error envelope."""
    return {"error": {"code": code, "message": message}}
