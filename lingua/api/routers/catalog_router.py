"""
Catalog and performance endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from lingua.container import EngineContainer
from lingua.session.manager import LearningSessionManager

from ..dependencies import get_container, get_manager, get_user_id

router = APIRouter()


class ConceptResponse(BaseModel):
    id: str
    title: str
    supported_source_languages: list[str]
    supported_target_languages: list[str]


class SubmoduleResponse(BaseModel):
    id: str
    title: str
    supported_modal_schema_ids: list[str]
    help_resources: list[dict[str, str]]


class ModuleResponse(BaseModel):
    id: str
    target_language: str
    title: str
    description: str
    supported_source_languages: list[str]
    submodules: list[SubmoduleResponse]


class SkillPerformanceResponse(BaseModel):
    correct: int
    total: int
    accuracy: int


class PerformanceResponse(BaseModel):
    module_id: str
    overall: SkillPerformanceResponse
    by_skill: dict[str, SkillPerformanceResponse]
    cefr_level: str


@router.get("/language-skills/concepts", response_model=list[ConceptResponse], tags=["Catalog"])
def list_concepts(
    target_language: str | None = Query(None, description="Only concepts offered in this language"),
    source_language: str | None = Query(None, description="Only concepts teachable from this language"),
    container: EngineContainer = Depends(get_container),
) -> list[ConceptResponse]:
    modules = container.catalog.modules
    concepts = modules.get_unique_module_concepts()
    if target_language:
        concepts = [c for c in concepts if target_language in c.supported_target_languages]
    if source_language:
        offered = {m.concept_id for m in modules.get_modules_for_source_language(source_language)}
        concepts = [c for c in concepts if c.id in offered]
    return [ConceptResponse(**c.to_dict()) for c in concepts]


@router.get("/learning/module", response_model=ModuleResponse, tags=["Catalog"])
def get_module(
    module_id: str = Query(...),
    target_language: str = Query(...),
    source_language: str = Query("en"),
    container: EngineContainer = Depends(get_container),
) -> ModuleResponse:
    module = container.catalog.modules.get_module(module_id, target_language)
    return ModuleResponse(
        id=module.id,
        target_language=module.target_language,
        title=module.title_for(source_language),
        description=module.description,
        supported_source_languages=list(module.supported_source_languages),
        submodules=[
            SubmoduleResponse(
                id=s.id,
                title=s.title_for(source_language),
                supported_modal_schema_ids=list(s.supported_modal_schema_ids),
                help_resources=[r.model_dump() for r in s.help_resources],
            )
            for s in module.submodules
        ],
    )


@router.get("/language-skills/performance", response_model=PerformanceResponse, tags=["Statistics"])
def get_performance(
    module_id: str = Query(...),
    user_id: str = Depends(get_user_id),
    manager: LearningSessionManager = Depends(get_manager),
) -> PerformanceResponse:
    performance = manager.performance(user_id, module_id)
    return PerformanceResponse(module_id=module_id, **performance.to_dict())
