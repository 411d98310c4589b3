"""
Main API router that aggregates all route modules.
"""

from fastapi import APIRouter

from .routes import chats, entries, flows, folders, profile, repositories, search


def get_api_router() -> APIRouter:
    api_router = APIRouter()

    api_router.include_router(entries.router)
    api_router.include_router(folders.router)
    api_router.include_router(flows.router)
    api_router.include_router(chats.router)
    api_router.include_router(search.router)
    api_router.include_router(repositories.router)
    api_router.include_router(profile.router)

    return api_router
