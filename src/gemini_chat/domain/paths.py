"""Hierarchical document paths used by the controllers."""

USERS_COLLECTION = "users"
CHATS_COLLECTION = "chats"
MESSAGES_COLLECTION = "messages"


def user_doc(uid: str) -> str:
    return f"{USERS_COLLECTION}/{uid}"


def chats_collection(uid: str) -> str:
    return f"{user_doc(uid)}/{CHATS_COLLECTION}"


def chat_doc(uid: str, chat_id: str) -> str:
    return f"{chats_collection(uid)}/{chat_id}"


def messages_collection(uid: str, chat_id: str) -> str:
    return f"{chat_doc(uid, chat_id)}/{MESSAGES_COLLECTION}"


def message_doc(uid: str, chat_id: str, message_id: str) -> str:
    return f"{messages_collection(uid, chat_id)}/{message_id}"
