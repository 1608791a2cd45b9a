from fastapi import Request, status

from campus_connect.utils.logging import get_logger
from campus_connect.utils.responses import ResponseBuilder

logger = get_logger()

# Error code to status code mapping
ERROR_STATUS_MAPPING = {
    # Auth / users
    "EMAIL_ALREADY_EXISTS": status.HTTP_409_CONFLICT,
    "DEPARTMENT_REQUIRED": status.HTTP_400_BAD_REQUEST,
    "ROLE_NOT_ALLOWED": status.HTTP_400_BAD_REQUEST,
    "INVALID_CREDENTIALS": status.HTTP_401_UNAUTHORIZED,
    "GOOGLE_TOKEN_INVALID": status.HTTP_401_UNAUTHORIZED,
    "GOOGLE_ACCOUNT_CONFLICT": status.HTTP_409_CONFLICT,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_CURRENT_PASSWORD": status.HTTP_400_BAD_REQUEST,
    "NOTHING_TO_UPDATE": status.HTTP_400_BAD_REQUEST,
    # Friends
    "CANNOT_FRIEND_SELF": status.HTTP_400_BAD_REQUEST,
    "STUDENTS_ONLY": status.HTTP_403_FORBIDDEN,
    "ALREADY_FRIENDS": status.HTTP_409_CONFLICT,
    "REQUEST_PENDING_FROM_OTHER": status.HTTP_409_CONFLICT,
    "INVALID_RESPOND_TARGET": status.HTTP_400_BAD_REQUEST,
    "CANNOT_ACCEPT_OWN_REQUEST": status.HTTP_400_BAD_REQUEST,
    "FRIEND_REQUEST_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FRIENDSHIP_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_FRIENDS": status.HTTP_403_FORBIDDEN,
    # Notifications
    "NOTIFICATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    # Routines
    "INVALID_TIME_RANGE": status.HTTP_400_BAD_REQUEST,
    "ROUTINE_TIME_CONFLICT": status.HTTP_409_CONFLICT,
    "ROUTINE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    # Study groups
    "STUDY_GROUP_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SOLE_CREATOR_CANNOT_LEAVE": status.HTTP_400_BAD_REQUEST,
    "NOT_A_MEMBER": status.HTTP_400_BAD_REQUEST,
    "NOT_GROUP_CREATOR": status.HTTP_403_FORBIDDEN,
    "NEW_OWNER_NOT_MEMBER": status.HTTP_400_BAD_REQUEST,
    "CANNOT_REMOVE_SELF": status.HTTP_400_BAD_REQUEST,
    # Games
    "ROOM_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ROOM_FULL": status.HTTP_409_CONFLICT,
    "ROOM_NOT_JOINABLE": status.HTTP_409_CONFLICT,
    "ROOM_CODE_GENERATION_FAILED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GAME_NOT_IN_PROGRESS": status.HTTP_409_CONFLICT,
    "NOT_A_PLAYER": status.HTTP_403_FORBIDDEN,
    "NOT_YOUR_TURN": status.HTTP_409_CONFLICT,
    "POSITION_TAKEN": status.HTTP_409_CONFLICT,
    "INVALID_POSITION": status.HTTP_400_BAD_REQUEST,
    "INVALID_CHOICE": status.HTTP_400_BAD_REQUEST,
    "CHOICE_ALREADY_MADE": status.HTTP_409_CONFLICT,
    "GAME_STATE_CONFLICT": status.HTTP_409_CONFLICT,
    "GAME_TYPE_NOT_SUPPORTED": status.HTTP_400_BAD_REQUEST,
    # Chat
    "CANNOT_CHAT_WITH_SELF": status.HTTP_400_BAD_REQUEST,
    "CHAT_ROOM_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_A_PARTICIPANT": status.HTTP_403_FORBIDDEN,
    "REPLY_TARGET_NOT_FOUND": status.HTTP_400_BAD_REQUEST,
    "MESSAGE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_MESSAGE_SENDER": status.HTTP_403_FORBIDDEN,
    # Feedback / bugs / admin
    "FEEDBACK_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "BUG_REPORT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_STATUS_TRANSITION": status.HTTP_400_BAD_REQUEST,
}

# Error code to user-friendly message mapping
ERROR_MESSAGES = {
    # Auth / users
    "EMAIL_ALREADY_EXISTS": "User with this email already exists",
    "DEPARTMENT_REQUIRED": "Department is required for student accounts",
    "ROLE_NOT_ALLOWED": "This role cannot be self-registered",
    "INVALID_CREDENTIALS": "Invalid email or password",
    "GOOGLE_TOKEN_INVALID": "Google token could not be verified",
    "GOOGLE_ACCOUNT_CONFLICT": "This email is linked to a different Google account",
    "USER_NOT_FOUND": "User not found",
    "INVALID_CURRENT_PASSWORD": "Current password is incorrect",
    "NOTHING_TO_UPDATE": "Nothing to update",
    "REGISTRATION_FAILED": "Registration failed",
    "PROFILE_UPDATE_FAILED": "Failed to update profile",
    # Friends
    "CANNOT_FRIEND_SELF": "You cannot send a friend request to yourself",
    "STUDENTS_ONLY": "Only students can use this feature",
    "ALREADY_FRIENDS": "You are already friends",
    "REQUEST_PENDING_FROM_OTHER": "This user has already sent you a friend request",
    "INVALID_RESPOND_TARGET": "Provide exactly one of senderId or recipientId",
    "CANNOT_ACCEPT_OWN_REQUEST": "You cannot accept your own friend request",
    "FRIEND_REQUEST_NOT_FOUND": "Friend request not found",
    "FRIENDSHIP_NOT_FOUND": "Friendship not found",
    "NOT_FRIENDS": "You can only do this with your friends",
    "FRIEND_REQUEST_FAILED": "Failed to send friend request",
    # Notifications
    "NOTIFICATION_NOT_FOUND": "Notification not found",
    # Routines
    "INVALID_TIME_RANGE": "End time must be after start time",
    "ROUTINE_TIME_CONFLICT": "This time slot conflicts with an existing routine",
    "ROUTINE_NOT_FOUND": "Routine not found",
    # Study groups
    "STUDY_GROUP_NOT_FOUND": "Study group not found",
    "SOLE_CREATOR_CANNOT_LEAVE": "Transfer ownership before leaving the group",
    "NOT_A_MEMBER": "You are not a member of this group",
    "NOT_GROUP_CREATOR": "Only the group creator can do this",
    "NEW_OWNER_NOT_MEMBER": "The new owner must already be a member of the group",
    "CANNOT_REMOVE_SELF": "Use leave to remove yourself from the group",
    "STUDY_GROUP_CREATION_FAILED": "Failed to create study group",
    # Games
    "ROOM_NOT_FOUND": "Game room not found",
    "ROOM_FULL": "Game room is full",
    "ROOM_NOT_JOINABLE": "Game room is no longer accepting players",
    "ROOM_CODE_GENERATION_FAILED": "Could not allocate a room code, please retry",
    "GAME_NOT_IN_PROGRESS": "Game is not in progress",
    "NOT_A_PLAYER": "You are not a player in this room",
    "NOT_YOUR_TURN": "It is not your turn",
    "POSITION_TAKEN": "Position already taken",
    "INVALID_POSITION": "Position must be between 0 and 8",
    "INVALID_CHOICE": "Choice must be rock, paper, or scissors",
    "CHOICE_ALREADY_MADE": "You have already made your choice for this round",
    "GAME_STATE_CONFLICT": "The game changed while your move was in flight, please retry",
    "GAME_TYPE_NOT_SUPPORTED": "This game is not available",
    "GAME_STATE_CORRUPT": "Stored game state could not be read",
    # Chat
    "CANNOT_CHAT_WITH_SELF": "You cannot chat with yourself",
    "CHAT_ROOM_NOT_FOUND": "Chat room not found",
    "NOT_A_PARTICIPANT": "Access denied to this chat room",
    "REPLY_TARGET_NOT_FOUND": "The message you replied to does not exist in this room",
    "MESSAGE_NOT_FOUND": "Message not found",
    "NOT_MESSAGE_SENDER": "You can only delete your own messages",
    # Feedback / bugs / admin
    "FEEDBACK_NOT_FOUND": "Feedback not found",
    "BUG_REPORT_NOT_FOUND": "Bug report not found",
    "INVALID_STATUS_TRANSITION": "This status change is not allowed",
}


def handle_service_error(request: Request, error: Exception):
    """Centralized service error handler for all routers.

    Services raise ``ValueError("CODE")`` or ``ValueError("CODE: detail")``; the
    detail, when present, replaces the generic message for the code.
    """
    error_message = str(error)

    if ":" in error_message:
        error_code, details = (part.strip() for part in error_message.split(":", 1))
    else:
        error_code, details = error_message.strip(), None

    status_code = ERROR_STATUS_MAPPING.get(
        error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    message = details or ERROR_MESSAGES.get(error_code, "An unexpected error occurred")

    if status_code >= 500:
        logger.error(f"Service error {error_code}: {error_message}")

    return ResponseBuilder.error(
        request=request,
        message=message,
        error_code=error_code,
        status_code=status_code,
    )
