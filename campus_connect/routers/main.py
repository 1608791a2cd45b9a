from fastapi import APIRouter

from campus_connect.routers.admin import admin_router
from campus_connect.routers.auth import auth_router
from campus_connect.routers.bugs import bugs_router
from campus_connect.routers.chat import chat_router
from campus_connect.routers.feedback import feedback_router
from campus_connect.routers.friends import friends_router
from campus_connect.routers.games import games_router
from campus_connect.routers.health import health_router
from campus_connect.routers.notifications import notifications_router
from campus_connect.routers.routines import routines_router
from campus_connect.routers.study_groups import study_groups_router
from campus_connect.routers.users import users_router

main_router = APIRouter()

# Include domain-based routers
main_router.include_router(auth_router, prefix="/auth", tags=["Auth"])
main_router.include_router(users_router, prefix="/users", tags=["Users"])
main_router.include_router(friends_router, prefix="/friends", tags=["Friends"])
main_router.include_router(
    notifications_router, prefix="/notifications", tags=["Notifications"]
)
main_router.include_router(routines_router, prefix="/routines", tags=["Routines"])
main_router.include_router(
    study_groups_router, prefix="/study-groups", tags=["Study Groups"]
)
main_router.include_router(games_router, prefix="/games", tags=["Games"])
main_router.include_router(chat_router, prefix="/chat", tags=["Chat"])
main_router.include_router(feedback_router, prefix="/feedback", tags=["Feedback"])
main_router.include_router(bugs_router, prefix="/bugs", tags=["Bug Reports"])
main_router.include_router(admin_router, prefix="/admin", tags=["Admin"])
main_router.include_router(health_router, prefix="/health", tags=["Health"])
