from .listeners import create_engine, instrument, is_instrumented, uninstrument

__all__ = [
    "create_engine",
    "instrument",
    "is_instrumented",
    "uninstrument",
]
