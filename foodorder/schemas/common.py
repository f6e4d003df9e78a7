from pydantic import BaseModel

class Msg(BaseModel):
    message: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class ErrorOut(BaseModel):
    detail: str
    error: str  # DomainError subclass name, e.g. "CouponExpired"
