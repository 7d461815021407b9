"""Website feedback schemas."""

from typing import Any, Optional

from pydantic import BaseModel


class FeedbackSubmit(BaseModel):
    # Array or object of answers, stored as sent
    answers: Any = None
    suggestions: Optional[str] = None
