from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, status

from voice_recipe.core.config import get_settings
from voice_recipe.core.errors import MissingCredentialsError
from voice_recipe.schemas.recipes import RecipeRecord, RecipeRequest
from voice_recipe.services.generator import RecipeGenerator

router = APIRouter()


@lru_cache
def get_generator() -> RecipeGenerator:
    return RecipeGenerator(get_settings())


def _generator_dependency() -> RecipeGenerator:
    try:
        return get_generator()
    except MissingCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("", response_model=RecipeRecord)
async def create_recipe(payload: RecipeRequest, generator: RecipeGenerator = Depends(_generator_dependency)) -> RecipeRecord:
    return await generator.generate(payload.text)
