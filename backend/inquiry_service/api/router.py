from fastapi import APIRouter

from inquiry_service.api.routes import admin_inquiries, inquiries, notifications

api_router = APIRouter()
api_router.include_router(inquiries.router)
api_router.include_router(admin_inquiries.router)
api_router.include_router(notifications.router)
