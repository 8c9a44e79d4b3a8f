from .session import build_engine, create_session_factory, get_session

__all__ = ["build_engine", "create_session_factory", "get_session"]
