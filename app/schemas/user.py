from pydantic import BaseModel, EmailStr


class UserOut(BaseModel):
    id: int
    email: EmailStr
    roles: list[str]
    is_active: bool
    is_blocked: bool
