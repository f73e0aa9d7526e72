from masdeporte.http.client import OutboundCall, SessionAwareClient, build_pipeline
from masdeporte.http.request_state import InvalidTransitionError, RequestState, RequestTrace
from masdeporte.http.session_store import FileStorage, MemoryStorage, SessionStore, TokenPair

__all__ = [
    "SessionAwareClient", "OutboundCall", "build_pipeline",
    "RequestState", "RequestTrace", "InvalidTransitionError",
    "SessionStore", "MemoryStorage", "FileStorage", "TokenPair",
]
