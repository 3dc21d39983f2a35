from pydantic import BaseModel, Field
from typing import Optional


class ReviewIn(BaseModel):
    rating: int = Field(ge=1, le=5)
    text: str = ""


class ReviewPatch(BaseModel):
    rating: int = Field(ge=1, le=5)
    text: Optional[str] = None


class ReviewOut(BaseModel):
    id: str
    hotelId: str
    authorId: str
    authorName: str
    rating: int
    text: str
    hotelAverageRating: float
