from pydantic import BaseModel


class SessionValidateRequest(BaseModel):
    token: str = ""
