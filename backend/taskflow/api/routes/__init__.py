from fastapi import APIRouter

from taskflow.api.routes import automations, badges, health, notifications, projects, tasks

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(automations.router, prefix="/automations", tags=["automations"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(badges.router, prefix="/badges", tags=["badges"])
