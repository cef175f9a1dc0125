"""Tabular results returned by every read on a vertex or edge set."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Sequence, Union, overload

from .errors import ColumnNotFoundError, ShapeMismatchError


class Result:
    """Named columns over ordered rows of string cells.

    ``result[i]`` is row ``i``; ``result["name"]`` is the column called
    ``name``. SQL ``NULL`` arrives as the literal string ``"NULL"``.
    """

    __slots__ = ("headers", "body")

    def __init__(
        self,
        headers: Optional[Sequence[str]] = None,
        body: Optional[Sequence[Sequence[str]]] = None,
    ) -> None:
        self.headers: List[str] = list(headers or [])
        self.body: List[List[str]] = [list(row) for row in body or []]
        width = len(self.headers)
        for idx, row in enumerate(self.body):
            if len(row) != width:
                raise ShapeMismatchError(
                    f"row {idx} has {len(row)} cells but the result has {width} columns"
                )

    @overload
    def __getitem__(self, key: int) -> List[str]: ...

    @overload
    def __getitem__(self, key: str) -> List[str]: ...

    def __getitem__(self, key: Union[int, str]) -> List[str]:
        if isinstance(key, str):
            return self.column(key)
        if isinstance(key, int):
            return self.body[key]
        raise TypeError("result index must be a row number or a column name")

    def __len__(self) -> int:
        return len(self.body)

    def __iter__(self) -> Iterator[List[str]]:
        return iter(self.body)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self.headers == other.headers and self.body == other.body

    def __repr__(self) -> str:
        return f"Result(headers={self.headers!r}, rows={len(self.body)})"

    def __str__(self) -> str:
        lines = ["|".join(self.headers)]
        lines.extend("|".join(row) for row in self.body)
        return "\n".join(lines) + "\n"

    def size(self) -> int:
        return len(self.body)

    def is_empty(self) -> bool:
        return not self.body

    def index_of(self, column: str) -> int:
        """Return the position of ``column``.

        Raises:
            ColumnNotFoundError: If no header is called ``column``
        """
        try:
            return self.headers.index(column)
        except ValueError:
            raise ColumnNotFoundError(column) from None

    def row(self, index: int) -> List[str]:
        return self.body[index]

    def column(self, name: str) -> List[str]:
        idx = self.index_of(name)
        return [row[idx] for row in self.body]

    def slice_rows(self, start: Optional[int] = None, stop: Optional[int] = None) -> "Result":
        """Return a new result holding rows ``start:stop``."""
        return Result(self.headers, self.body[start:stop])

    def select_columns(self, *names: str) -> "Result":
        """Return a new result holding only ``names``, in that order."""
        if not names:
            raise ValueError("select_columns() requires at least one column name")
        indices = [self.index_of(name) for name in names]
        return Result(list(names), [[row[idx] for idx in indices] for row in self.body])

    def to_dicts(self) -> List[Dict[str, str]]:
        return [dict(zip(self.headers, row)) for row in self.body]

    def merge_rows(self, other: "Result") -> "Result":
        """Append the columns of ``other`` that this result lacks, matching rows by ``id``.

        Every row here must correspond to exactly one row of ``other`` with
        the same ``id`` and vice versa.

        Returns:
            This result, extended in place

        Raises:
            ShapeMismatchError: If the rows cannot be paired one to one
            ColumnNotFoundError: If either side has no ``id`` column
        """
        own_ids = self.column("id")
        other_ids = other.column("id")
        if len(own_ids) != len(other_ids):
            raise ShapeMismatchError(
                f"cannot merge {len(other_ids)} rows into {len(own_ids)} rows"
            )
        position: Dict[str, int] = {}
        for idx, value in enumerate(other_ids):
            if value in position:
                raise ShapeMismatchError(f"id '{value}' appears more than once in merged rows")
            position[value] = idx
        mapping: List[int] = []
        for value in own_ids:
            if value not in position:
                raise ShapeMismatchError(f"id '{value}' has no counterpart in merged rows")
            mapping.append(position[value])
        if len(set(mapping)) != len(mapping):
            raise ShapeMismatchError("rows being merged repeat an id")

        for col_idx, header in enumerate(other.headers):
            if header in self.headers:
                continue
            self.headers.append(header)
            for row, other_idx in zip(self.body, mapping):
                row.append(other.body[other_idx][col_idx])
        return self


__all__ = ["Result"]
