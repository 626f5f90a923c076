"""
Vocabulary endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel

from lingua.container import EngineContainer

from ..dependencies import get_container

router = APIRouter()


class VocabularyResponse(BaseModel):
    word: str
    language: str
    lemma: str | None = None
    cefr_level: str | None = None
    themes: list[str]
    translation: str | None = None
    definition: str | None = None


@router.get("/vocabulary/lookup", response_model=VocabularyResponse, tags=["Vocabulary"])
async def lookup_word(
    response: Response,
    word: str = Query(..., description="Word in the target language"),
    lang: str = Query(..., description="Two-letter language code"),
    container: EngineContainer = Depends(get_container),
) -> VocabularyResponse:
    """Cached entry (200), or a freshly generated and stored one (201)."""
    entry, created = await container.vocabulary_lookup.lookup(word, lang)
    if created:
        response.status_code = 201
    return VocabularyResponse(**entry.to_dict())
