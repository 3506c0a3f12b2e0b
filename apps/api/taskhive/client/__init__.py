from taskhive.client.api import ApiError, TaskhiveApi
from taskhive.client.store import BoardStore, TransactionLog

__all__ = ["ApiError", "BoardStore", "TaskhiveApi", "TransactionLog"]
