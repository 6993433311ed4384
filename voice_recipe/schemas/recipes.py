from datetime import datetime

from pydantic import BaseModel, Field, field_validator

UNTITLED_RECIPE = "Untitled Recipe"
INGREDIENTS_PLACEHOLDER = "Ingredients could not be extracted"
STEPS_PLACEHOLDER = "Steps could not be extracted"


class RecipeRecord(BaseModel):
    id: str
    title: str = UNTITLED_RECIPE
    ingredients: list[str] = Field(default_factory=lambda: [INGREDIENTS_PLACEHOLDER])
    steps: list[str] = Field(default_factory=lambda: [STEPS_PLACEHOLDER])
    created_at: datetime

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        return value.strip() or UNTITLED_RECIPE

    @field_validator("ingredients")
    @classmethod
    def _ingredients_not_empty(cls, value: list[str]) -> list[str]:
        return value or [INGREDIENTS_PLACEHOLDER]

    @field_validator("steps")
    @classmethod
    def _steps_not_empty(cls, value: list[str]) -> list[str]:
        return value or [STEPS_PLACEHOLDER]


class RecipeRequest(BaseModel):
    text: str = Field(min_length=1)
