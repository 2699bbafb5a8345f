from typing import Optional

from pydantic import BaseModel


class AskRequest(BaseModel):
    message: Optional[str] = None
    # 'tema' and 'theme' are accepted for older front-ends
    topic: Optional[str] = None
    tema: Optional[str] = None
    theme: Optional[str] = None

    @property
    def selected_topic(self) -> Optional[str]:
        return self.topic or self.tema or self.theme


class AskResponse(BaseModel):
    reply: str
    remaining: int
    subscribed: bool
    token: str


class HealthResponse(BaseModel):
    ok: bool
    model: str
    provider: str
