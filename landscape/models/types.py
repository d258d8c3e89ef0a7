# landscape/models/types.py
from sqlalchemy.types import TypeDecorator
from sqlalchemy import JSON

from landscape.errors import PersistenceError


class JSONBCompat(TypeDecorator):
    """
    JSONB en PostgreSQL, JSON genérico en SQLite.

    ``shape`` (dict o list) se valida al escribir y al leer: un blob con otra
    forma es un error de persistencia, no un valor que se deja pasar.
    """
    impl = JSON
    cache_ok = True

    def __init__(self, shape=None, **jsonb_kwargs):
        super().__init__()
        self.shape = shape
        self._jsonb_kwargs = jsonb_kwargs

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import JSONB
            return dialect.type_descriptor(JSONB(**self._jsonb_kwargs))
        return dialect.type_descriptor(JSON())

    def _check(self, value, where: str):
        if value is None or self.shape is None:
            return value
        if not isinstance(value, self.shape):
            raise PersistenceError(
                f"Expected JSON {self.shape.__name__} {where}, got {type(value).__name__}"
            )
        return value

    def process_bind_param(self, value, dialect):
        return self._check(value, "on write")

    def process_result_value(self, value, dialect):
        return self._check(value, "on read")
