"""Google BigQuery connector."""

from __future__ import annotations
import asyncio
import json
from functools import partial
from typing import Any

from blast.connectors.base import Connector
from blast.query.extract import Query


class BigQueryConnector(Connector):
    """Runs and dry-runs queries on BigQuery."""

    def __init__(
        self,
        project_id: str,
        service_account_json: str | None = None,
        service_account_file: str | None = None,
        location: str | None = None,
    ):
        self.project_id = project_id
        self.service_account_json = service_account_json
        self.service_account_file = service_account_file
        self.location = location
        self._client = None

    async def connect(self) -> None:
        try:
            from google.cloud import bigquery
        except ImportError:
            raise ImportError("Install google-cloud-bigquery: pip install blast-pipelines[bigquery]")

        kwargs = {"project": self.project_id}
        if self.service_account_json:
            from google.oauth2 import service_account
            info = json.loads(self.service_account_json)
            kwargs["credentials"] = service_account.Credentials.from_service_account_info(info)
        elif self.service_account_file:
            from google.oauth2 import service_account
            kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                self.service_account_file
            )

        self._client = bigquery.Client(**kwargs)

    async def disconnect(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    async def _query(self, sql: str, job_config=None):
        if not self._client:
            await self.connect()
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None, partial(self._client.query, sql, job_config=job_config, location=self.location)
        )

    async def is_valid(self, query: Query) -> bool:
        """Dry-run the query; BigQuery rejects invalid SQL with an error."""
        from google.cloud.bigquery import QueryJobConfig

        job = await self._query(
            query.to_script(),
            job_config=QueryJobConfig(dry_run=True, use_query_cache=False),
        )
        return job.errors is None or len(job.errors) == 0

    async def run_query_without_result(self, query: Query) -> None:
        job = await self._query(query.to_script())
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, job.result)

    async def select(self, query: Query) -> list[list[Any]]:
        job = await self._query(query.to_script())
        loop = asyncio.get_event_loop()
        rows = await loop.run_in_executor(None, job.result)
        return [list(row.values()) for row in rows]
