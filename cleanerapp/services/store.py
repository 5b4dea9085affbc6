"""Relational store interface and the REST (PostgREST) adapter."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from pydantic_core import to_jsonable_python

from cleanerapp.errors import NotFound, StoreError
from cleanerapp.services.rest_client import BackendClient

logger = logging.getLogger(__name__)

# (column, ascending)
Order = Tuple[str, bool]

# PostgREST code for "JSON object requested, multiple (or no) rows returned"
NO_SINGLE_ROW = "PGRST116"


def asc(column: str) -> Order:
    return (column, True)


def desc(column: str) -> Order:
    return (column, False)


class RelationalStore:
    """The handful of table primitives the core depends on.

    Rows are plain dicts keyed by column name.
    """

    def select(
        self,
        table: str,
        eq: Optional[Dict[str, Any]] = None,
        in_: Optional[Dict[str, Iterable[Any]]] = None,
        order: Sequence[Order] = (),
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        """Rows matching all equality and set-membership filters."""
        raise NotImplementedError

    def select_single(self, table: str, eq: Dict[str, Any], columns: str = "*") -> Dict[str, Any]:
        """Exactly one row, or NotFound."""
        raise NotImplementedError

    def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored."""
        raise NotImplementedError

    def update(self, table: str, row_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Update one row by id and return it as stored, or NotFound."""
        raise NotImplementedError


class RestStore(BackendClient, RelationalStore):
    """RelationalStore backed by the hosted PostgREST API."""

    SINGLE = {"Accept": "application/vnd.pgrst.object+json"}
    RETURN_ROW = {"Prefer": "return=representation", "Accept": "application/vnd.pgrst.object+json"}

    def _path(self, table: str) -> str:
        return f"/rest/v1/{table}"

    @staticmethod
    def _filters(
        eq: Optional[Dict[str, Any]] = None,
        in_: Optional[Dict[str, Iterable[Any]]] = None,
    ) -> List[Tuple[str, str]]:
        params = []
        for column, value in (eq or {}).items():
            params.append((column, f"eq.{to_jsonable_python(value)}"))
        for column, values in (in_ or {}).items():
            quoted = ",".join(f'"{to_jsonable_python(v)}"' for v in values)
            params.append((column, f"in.({quoted})"))
        return params

    def _check_single(self, response: httpx.Response, table: str) -> Dict[str, Any]:
        try:
            self._check(response)
        except StoreError as e:
            if e.code == NO_SINGLE_ROW or response.status_code == 406:
                raise NotFound(f"No matching row in {table}") from e
            raise
        return response.json()

    def select(self, table, eq=None, in_=None, order=(), columns="*"):
        params = [("select", columns)] + self._filters(eq, in_)
        if order:
            params.append(("order", ",".join(f"{col}.{'asc' if ascending else 'desc'}" for col, ascending in order)))

        response = self._check(self._request("GET", self._path(table), params=params))
        return response.json() or []

    def select_single(self, table, eq, columns="*"):
        params = [("select", columns)] + self._filters(eq)
        response = self._request("GET", self._path(table), params=params, headers=dict(self.SINGLE))
        return self._check_single(response, table)

    def insert(self, table, values):
        response = self._check(
            self._request(
                "POST",
                self._path(table),
                json=to_jsonable_python(values),
                headers=dict(self.RETURN_ROW),
            )
        )
        return response.json()

    def update(self, table, row_id, values):
        response = self._request(
            "PATCH",
            self._path(table),
            params=[("id", f"eq.{row_id}")],
            json=to_jsonable_python(values),
            headers=dict(self.RETURN_ROW),
        )
        return self._check_single(response, table)
