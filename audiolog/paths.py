"""
Logical document paths, keyed by app id.

    artifacts/{app}/public/data/logs/{log_id}
    artifacts/{app}/public/data/logs/{log_id}/comments/{comment_id}
    artifacts/{app}/users/{uid}/settings/journey
"""

from audiolog.config import APP_ID


def logs_col(app_id: str = APP_ID) -> str:
    return f"artifacts/{app_id}/public/data/logs"


def log_doc(log_id: str, app_id: str = APP_ID) -> str:
    return f"{logs_col(app_id)}/{log_id}"


def comments_col(log_id: str, app_id: str = APP_ID) -> str:
    return f"{log_doc(log_id, app_id)}/comments"


def settings_doc(user_id: str, app_id: str = APP_ID) -> str:
    return f"artifacts/{app_id}/users/{user_id}/settings/journey"


def split_path(path: str):
    """Split a document path into (collection_path, doc_id)."""
    collection_path, _, doc_id = path.rpartition("/")
    return collection_path, doc_id
