from fastapi import APIRouter

from simflow.api.hours import hours_router
from simflow.api.projects import projects_router

api_router = APIRouter()
api_router.include_router(projects_router)
api_router.include_router(hours_router)
