"""
Database Manager - PostgreSQL storage for stacks.

Stacks are stored with a resource_version column. Status writes are
conditional on that version, giving the same optimistic concurrency as a
Kubernetes status subresource.
"""

import asyncpg
import json
import logging
from typing import Any, Dict, List, Optional

from conditions import Condition
from errors import ConflictError, NotFoundError
from resources import NamespacedName, Stack, StackClient

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS stacks (
    id SERIAL PRIMARY KEY,
    namespace VARCHAR(253) NOT NULL,
    name VARCHAR(253) NOT NULL,
    resource_version BIGINT NOT NULL DEFAULT 1,
    spec JSONB NOT NULL DEFAULT '{}'::jsonb,
    status JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMP NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMP NOT NULL DEFAULT NOW(),
    UNIQUE (namespace, name)
)
"""


class DatabaseManager(StackClient):
    """Manages PostgreSQL storage of stacks and their status."""

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_pool_size: int = 5,
        max_pool_size: int = 20,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Establish connection pool to PostgreSQL."""
        self.pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            min_size=self.min_pool_size,
            max_size=self.max_pool_size,
            command_timeout=60,
        )
        logger.info(
            f"Connected to PostgreSQL (pool: {self.min_pool_size}-{self.max_pool_size})"
        )

    async def close(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            logger.info("Closed PostgreSQL connection")

    def _ensure_connected(self) -> None:
        """Ensure the database connection pool is established."""
        if self.pool is None:
            raise RuntimeError(
                "Database not connected. Call connect() before performing operations."
            )

    async def initialize_schema(self) -> None:
        """Create the stacks table if it does not exist."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA)
        logger.info("Database schema initialized")

    # ==================== Stack Methods ====================

    async def create_stack(
        self, ref: NamespacedName, spec: Optional[Dict[str, Any]] = None
    ) -> Stack:
        """
        Create a new stack with an empty status.

        Args:
            ref: Namespace and name of the stack
            spec: Optional stack specification
        """
        if spec is None:
            spec = {}

        self._ensure_connected()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO stacks (namespace, name, spec)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                ref.namespace,
                ref.name,
                json.dumps(spec),
            )

        logger.info(f"Created stack {ref}")
        return self._parse_stack_row(row)

    async def get_stack(self, ref: NamespacedName) -> Optional[Stack]:
        """Get a stack by namespace and name."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM stacks WHERE namespace = $1 AND name = $2",
                ref.namespace,
                ref.name,
            )
            if not row:
                return None

            return self._parse_stack_row(row)

    async def list_stacks(
        self, namespace: Optional[str] = None, limit: int = 100
    ) -> List[Stack]:
        """List stacks, optionally restricted to a namespace."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            query = "SELECT * FROM stacks"
            params = []
            param_count = 0

            if namespace:
                param_count += 1
                query += f" WHERE namespace = ${param_count}"
                params.append(namespace)

            param_count += 1
            query += f" ORDER BY namespace, name LIMIT ${param_count}"
            params.append(limit)

            rows = await conn.fetch(query, *params)
            return [self._parse_stack_row(row) for row in rows]

    async def update_stack_status(self, stack: Stack) -> Stack:
        """
        Write the status of a stack if its resource version is unchanged.

        Raises:
            ConflictError: If the stack was updated since it was read
            NotFoundError: If the stack no longer exists
        """
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            new_version = await conn.fetchval(
                """
                UPDATE stacks
                SET status = $1,
                    resource_version = resource_version + 1,
                    updated_at = NOW()
                WHERE namespace = $2
                  AND name = $3
                  AND resource_version = $4
                RETURNING resource_version
                """,
                json.dumps(stack.status_dict()),
                stack.namespace,
                stack.name,
                stack.resource_version,
            )

            if new_version is None:
                current_version = await conn.fetchval(
                    "SELECT resource_version FROM stacks "
                    "WHERE namespace = $1 AND name = $2",
                    stack.namespace,
                    stack.name,
                )
                if current_version is None:
                    raise NotFoundError("stack not found", name=stack.ref)
                raise ConflictError(
                    "stack has been modified",
                    name=stack.ref,
                    expected_version=stack.resource_version,
                    current_version=current_version,
                )

        stack.resource_version = new_version
        logger.debug(f"Updated status of stack {stack.ref} to version {new_version}")
        return stack

    async def delete_stack(self, ref: NamespacedName) -> bool:
        """
        Delete a stack.

        Returns:
            True if the stack was deleted, False if it did not exist
        """
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            result = await conn.fetchval(
                "DELETE FROM stacks WHERE namespace = $1 AND name = $2 RETURNING id",
                ref.namespace,
                ref.name,
            )
            if result:
                logger.info(f"Deleted stack {ref}")
                return True
            return False

    def _parse_stack_row(self, row: asyncpg.Record) -> Stack:
        """
        Parse a stack row from the database.

        JSON columns may come back as strings; status conditions are
        validated into Condition models.
        """
        result = dict(row)
        spec = result.get("spec") or {}
        if isinstance(spec, str):
            spec = json.loads(spec)
        status = result.get("status") or {}
        if isinstance(status, str):
            status = json.loads(status)

        return Stack(
            namespace=result["namespace"],
            name=result["name"],
            resource_version=result["resource_version"],
            spec=spec,
            conditions=[
                Condition.model_validate(c) for c in status.get("conditions", [])
            ],
        )
