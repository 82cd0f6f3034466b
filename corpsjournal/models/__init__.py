from .kv_record import KVRecord

__all__ = [
    "KVRecord",
]
