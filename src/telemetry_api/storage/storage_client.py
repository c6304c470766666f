"""
Storage Client

Gateway to the document store. Documents are addressed by (database, collection, id)
and stored as JSONB; queries take a FilterOptions ordering and a QueryExpression predicate.
"""

import asyncio
import json
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import asyncpg
from loguru import logger

from telemetry_api.storage.errors import StorageError
from telemetry_api.storage.query_builder import FilterOptions
from telemetry_api.storage.query_builder import QueryExpression

TABLE = "telemetry.documents"

# Errors from the driver or the network that callers may retry
_STORAGE_FAILURES = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


def _decode(body: Any) -> Dict[str, Any]:
    # asyncpg returns JSONB as text unless a codec is registered
    if isinstance(body, str):
        return json.loads(body)
    return dict(body)


def _document_id(record: Dict[str, Any]) -> str:
    document_id = record.get("id", record.get("Id"))
    if not document_id:
        raise ValueError("Document has no 'id' or 'Id' field")
    return str(document_id)


class StorageClient:
    """
    Document store gateway over an asyncpg pool.

    Every driver or connection failure is re-raised as StorageError.
    """

    def __init__(self, pool):
        """
        Initialize storage client.

        Args:
            pool: DocumentDBPool (or anything exposing acquire())
        """
        self.pool = pool

    async def query_documents(
        self,
        database: str,
        collection: str,
        filter_options: FilterOptions,
        query_expression: QueryExpression,
        skip: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """
        Return documents matching query_expression, ordered per filter_options.

        Args:
            database: Logical database name
            collection: Collection name
            filter_options: Ordering of the result
            query_expression: Predicate over the document body
            skip: Number of matching documents to skip
            limit: Maximum number of documents to return

        Returns:
            List of document bodies
        """
        sql = (
            f"SELECT body FROM {TABLE} "
            f"WHERE database_name = $1 AND collection_name = $2 AND {query_expression.render(3)} "
            f"ORDER BY {filter_options.render()} "
            f"OFFSET ${len(query_expression.args) + 3} LIMIT ${len(query_expression.args) + 4}"
        )
        args = [database, collection, *query_expression.args, skip, limit]

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(sql, *args)
        except _STORAGE_FAILURES as e:
            raise StorageError(f"Query on {database}/{collection} failed: {e}") from e

        logger.debug("Documents queried", database=database, collection=collection, count=len(rows))
        return [_decode(row["body"]) for row in rows]

    async def delete_document(self, database: str, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        """
        Delete one document by id.

        Returns:
            The deleted document, or None when no document had that id
        """
        sql = f"DELETE FROM {TABLE} WHERE database_name = $1 AND collection_name = $2 AND id = $3 RETURNING body"

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(sql, database, collection, document_id)
        except _STORAGE_FAILURES as e:
            raise StorageError(f"Delete of {database}/{collection}/{document_id} failed: {e}") from e

        return _decode(row["body"]) if row else None

    async def upsert_document(self, database: str, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert or replace one document, keyed by its 'id' (or 'Id') field.

        Returns:
            The stored document
        """
        document_id = _document_id(record)
        sql = (
            f"INSERT INTO {TABLE} (database_name, collection_name, id, body, updated_at) "
            "VALUES ($1, $2, $3, $4::JSONB, now()) "
            "ON CONFLICT (database_name, collection_name, id) "
            "DO UPDATE SET body = EXCLUDED.body, updated_at = now() "
            "RETURNING body"
        )

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(sql, database, collection, document_id, json.dumps(record, default=str))
        except _STORAGE_FAILURES as e:
            raise StorageError(f"Upsert of {database}/{collection}/{document_id} failed: {e}") from e

        return _decode(row["body"])

    async def count_documents_by_rule(
        self,
        database: str,
        collection: str,
        filter_options: FilterOptions,
        query_expression: QueryExpression,
        skip: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """
        Count matching alarms per rule.

        Returns:
            One dict per rule with rule_id, count, status (of the latest alarm) and
            last_created (epoch millis of the latest alarm), ordered by last_created
        """
        created = "(body ->> 'created')::BIGINT"
        sql = (
            "SELECT body ->> 'rule_id' AS rule_id, COUNT(*) AS count, "
            f"MAX({created}) AS last_created, "
            f"(ARRAY_AGG(body ->> 'status' ORDER BY {created} DESC))[1] AS status "
            f"FROM {TABLE} "
            f"WHERE database_name = $1 AND collection_name = $2 AND {query_expression.render(3)} "
            "GROUP BY body ->> 'rule_id' "
            f"ORDER BY last_created {filter_options.order.upper()}, rule_id "
            f"OFFSET ${len(query_expression.args) + 3} LIMIT ${len(query_expression.args) + 4}"
        )
        args = [database, collection, *query_expression.args, skip, limit]

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(sql, *args)
        except _STORAGE_FAILURES as e:
            raise StorageError(f"Count by rule on {database}/{collection} failed: {e}") from e

        return [dict(row) for row in rows]
