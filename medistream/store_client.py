"""REST client for the hosted relational store (PostgREST dialect)."""

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import StoreConfig
from .models import DatasetTable, Row

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A request to the data store failed."""


class DataStoreClient:
    """Generic request/response access to the store's tables."""

    def __init__(self, config: StoreConfig, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            config: Store configuration.
            session: Optional pre-built session (tests inject a mock).
        """
        self.config = config
        self.base_url = f"{config.url.rstrip('/')}/rest/v1"
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _request(self, method: str, table: str, **kwargs) -> Any:
        url = f"{self.base_url}/{table}"
        try:
            response = self.session.request(method, url, timeout=self.config.timeout, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as e:
            body = e.response.text[:200] if e.response is not None else ""
            logger.error(f"Store {method} {table} failed: {e} {body}")
            raise StoreError(f"{method} {table} failed: {e}") from e
        except requests.RequestException as e:
            logger.error(f"Store {method} {table} failed: {e}")
            raise StoreError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"{method} {table} returned invalid JSON") from e

    def select_all(self, table: str, order_by: str, descending: bool = True) -> List[Row]:
        """
        Fetch every row of ``table`` ordered by ``order_by``.

        Returns:
            The rows, newest first when ``descending`` is set.
        """
        direction = "desc" if descending else "asc"
        data = self._request("GET", table, params={"select": "*", "order": f"{order_by}.{direction}"})
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreError(f"Unexpected response for {table}: expected a list of rows")
        return data

    def insert(self, table: str, row: Row) -> Row:
        data = self._request("POST", table, json=row, headers={"Prefer": "return=representation"})
        return data[0] if isinstance(data, list) and data else row

    def update(self, table: str, key: str, value: Any, changes: Row) -> Optional[Row]:
        data = self._request(
            "PATCH",
            table,
            params={key: f"eq.{value}"},
            json=changes,
            headers={"Prefer": "return=representation"},
        )
        return data[0] if isinstance(data, list) and data else None

    def delete(self, table: str, key: str, value: Any) -> None:
        self._request("DELETE", table, params={key: f"eq.{value}"})


class DatasetRepository:
    """CRUD for one dataset, keyed by its primary identifier."""

    def __init__(self, client: DataStoreClient, dataset: DatasetTable):
        self.client = client
        self.dataset = dataset

    def list(self) -> List[Row]:
        return self.client.select_all(self.dataset.table, order_by=self.dataset.key, descending=True)

    def create(self, row: Row) -> Row:
        logger.info(f"Creating {self.dataset.label} row")
        return self.client.insert(self.dataset.table, row)

    def update(self, key_value: Any, changes: Dict[str, Any]) -> Optional[Row]:
        logger.info(f"Updating {self.dataset.label} row {key_value}")
        return self.client.update(self.dataset.table, self.dataset.key, key_value, changes)

    def delete(self, key_value: Any) -> None:
        logger.info(f"Deleting {self.dataset.label} row {key_value}")
        self.client.delete(self.dataset.table, self.dataset.key, key_value)
