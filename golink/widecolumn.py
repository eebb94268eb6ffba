"""Generic repository over a wide column store such as Cassandra or ScyllaDB."""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Generic, Optional, TypeVar

from .dto import Paginated, QueryOptions
from .mapper import Mapper, Model

M = TypeVar("M", bound=Model)

_default_mapper = Mapper()


class WideColumnError(Exception):
    """Base class of wide column store errors."""


class NotFoundError(WideColumnError):
    """No record matched."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)


class InvalidIDError(WideColumnError):
    """The identifier is not valid."""

    def __init__(self, message: str = "invalid id") -> None:
        super().__init__(message)


class Session(ABC):
    """A connection that runs CQL statements with positional ``?`` parameters."""

    @abstractmethod
    def execute(self, statement: str, params: Sequence[Any] = ()) -> list[Mapping[str, Any]]:
        """Run one statement and return its rows as column mappings."""

    @abstractmethod
    def execute_batch(self, statements: Sequence[tuple[str, Sequence[Any]]]) -> None:
        """Run several statements as one logged batch."""


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)


class WideColumnRepository(Generic[M]):
    """Create, read and delete models of one table, keyed by their id column."""

    def __init__(self, session: Session, prototype: M, mapper: Optional[Mapper] = None) -> None:
        self._session = session
        self._model_type = type(prototype)
        self._table = prototype.table_name()
        self._mapper = mapper or _default_mapper

    @property
    def table_name(self) -> str:
        """The table this repository works on."""
        return self._table

    def _insert(self, model: M, suffix: str = "") -> tuple[str, list[Any]]:
        columns = model.column_names()
        statement = (
            f"INSERT INTO {self._table} ({', '.join(columns)}) "
            f"VALUES ({_placeholders(len(columns))}){suffix}"
        )
        return statement, list(model.column_values())

    def _delete_statement(self) -> str:
        return f"DELETE FROM {self._table} WHERE id = ?"

    def _bind(self, row: Mapping[str, Any]) -> M:
        model = self._model_type()
        self._mapper.bind(row, model)
        return model

    def create(self, model: M) -> None:
        """Insert a model."""
        statement, params = self._insert(model)
        self._session.execute(statement, params)

    def create_with_ttl(self, model: M, ttl: int) -> None:
        """Insert a model that expires after ttl seconds."""
        statement, params = self._insert(model, " USING TTL ?")
        self._session.execute(statement, params + [ttl])

    def update(self, model: M) -> None:
        """Overwrite a model (an insert with the same key)."""
        self.create(model)

    def delete(self, item_id: Any) -> None:
        """Remove the model with the given id."""
        self._session.execute(self._delete_statement(), [item_id])

    def get(self, item_id: Any) -> M:
        """Fetch the model with the given id; raise NotFoundError if absent."""
        rows = self._session.execute(f"SELECT * FROM {self._table} WHERE id = ?", [item_id])
        if not rows:
            raise NotFoundError()
        return self._bind(rows[0])

    def find(self, opts: Optional[QueryOptions] = None) -> Paginated[M]:
        """Fetch every model of the table; rows that cannot be bound are skipped."""
        records: list[M] = []
        for row in self._session.execute(f"SELECT * FROM {self._table}", []):
            try:
                records.append(self._bind(row))
            except (TypeError, ValueError):
                continue
        return Paginated(records=records, pagination=None)

    def exists(self, item_id: Any) -> bool:
        """Tell whether a model with the given id exists."""
        rows = self._session.execute(f"SELECT count(*) FROM {self._table} WHERE id = ?", [item_id])
        if not rows:
            raise NotFoundError()
        count = next(iter(rows[0].values()), 0)
        return int(count or 0) > 0

    def create_batch(self, models: list[M]) -> None:
        """Insert several models in one logged batch."""
        if not models:
            return
        self._session.execute_batch([self._insert(model) for model in models])

    def delete_batch(self, ids: list[Any]) -> None:
        """Remove several models by id in one logged batch."""
        if not ids:
            return
        statement = self._delete_statement()
        self._session.execute_batch([(statement, [item_id]) for item_id in ids])