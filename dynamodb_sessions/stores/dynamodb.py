"""Server-side session storage on Amazon DynamoDB.

Each session is one item keyed by `<prefix><session id>` in a table whose only
key is the string hash key `id`. Expiry is lazy: an expired (or payload-less)
item is deleted when it is next read. An optional periodic sweep (`reap`) can
be enabled with `reap_interval`.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from dynamodb_sessions.core.config import (
    DEFAULT_CAPACITY_UNITS,
    DEFAULT_PREFIX,
    DEFAULT_REGION,
    DEFAULT_TABLE,
    SessionStoreSettings,
)
from dynamodb_sessions.core.schemas.session import (
    SessionPayload,
    SessionRecord,
    compute_expires,
    deserialize_session,
    serialize_session,
)
from dynamodb_sessions.core.utils.logging_config import configure_logging, log_context
from dynamodb_sessions.stores.base import SessionStore
from dynamodb_sessions.stores.client_factory import build_client_kwargs, create_dynamodb_client

if TYPE_CHECKING:  # pragma: no cover
    from types_aiobotocore_dynamodb import DynamoDBClient

logger = logging.getLogger(__name__)


class DynamoDBSessionStore(SessionStore):
    """Session store backed by a DynamoDB table (Async)"""

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        table: str = DEFAULT_TABLE,
        client: Optional["DynamoDBClient"] = None,
        region: str = DEFAULT_REGION,
        aws_config_path: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_session_token: Optional[str] = None,
        reap_interval: float = 0,
        read_capacity: int = DEFAULT_CAPACITY_UNITS,
        write_capacity: int = DEFAULT_CAPACITY_UNITS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the store.

        Args:
            prefix: Namespace prepended to every session id to form the item key
            table: DynamoDB table name
            client: An already-entered aiobotocore DynamoDB client. When omitted
                the store creates (and owns) one on first use from the
                region/credential options.
            reap_interval: Seconds between sweeps for expired sessions;
                0 (the default) never starts a sweep
            clock: Returns the current time in epoch seconds

        The table bootstrap (describe, then create if missing) is started in
        the background; construction never waits for it.
        """
        self.prefix = prefix
        self.table = table
        self.reap_interval = reap_interval
        self.read_capacity = read_capacity
        self.write_capacity = write_capacity
        self._clock = clock

        self._client = client
        self._client_kwargs: Optional[Dict[str, Any]] = None
        if client is None:
            self._client_kwargs = build_client_kwargs(
                region=region,
                aws_config_path=aws_config_path,
                endpoint_url=endpoint_url,
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                aws_session_token=aws_session_token,
            )
        self._exit_stack: Optional[AsyncExitStack] = None
        self._client_lock = asyncio.Lock()

        self._bootstrap_task: Optional[asyncio.Task] = None
        self._reap_task: Optional[asyncio.Task] = None
        self._background_started = False
        self._start_background_tasks()

    @classmethod
    def from_settings(
        cls,
        settings: SessionStoreSettings,
        client: Optional["DynamoDBClient"] = None,
        **kwargs: Any,
    ) -> "DynamoDBSessionStore":
        """Build a store from SessionStoreSettings, applying its logging options"""
        configure_logging(settings)
        options: Dict[str, Any] = dict(
            prefix=settings.prefix,
            table=settings.table,
            reap_interval=settings.reap_interval,
            read_capacity=settings.read_capacity,
            write_capacity=settings.write_capacity,
            **settings.client_options(),
        )
        options.update(kwargs)
        return cls(client=client, **options)

    @property
    def bootstrap_task(self) -> Optional[asyncio.Task]:
        return self._bootstrap_task

    def _key(self, session_id: str) -> Dict[str, Dict[str, str]]:
        return {"id": {"S": self.prefix + session_id}}

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    # ------------------------------------------------------------------
    # Client and background task lifecycle
    # ------------------------------------------------------------------

    def _start_background_tasks(self) -> None:
        """Schedule the table bootstrap and, if enabled, the reap loop.

        Runs once, as soon as an event loop is available: at construction when
        a loop is running, otherwise at the first store operation.
        """
        if self._background_started:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; deferring session table bootstrap")
            return

        self._background_started = True
        self._bootstrap_task = loop.create_task(self._bootstrap())
        if self.reap_interval > 0:
            self._reap_task = loop.create_task(self._reap_loop())
            logger.info(f"Session reaping enabled every {self.reap_interval}s for table {self.table}")

    async def _get_client(self) -> "DynamoDBClient":
        self._start_background_tasks()
        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is None:
                stack = AsyncExitStack()
                self._client = await stack.enter_async_context(
                    create_dynamodb_client(**(self._client_kwargs or {}))
                )
                self._exit_stack = stack
                logger.debug(f"DynamoDB client created for session table {self.table}")
        return self._client

    async def close(self) -> None:
        """Stop background tasks and release a client the store created itself"""
        self.clear_interval()
        if self._bootstrap_task is not None and not self._bootstrap_task.done():
            self._bootstrap_task.cancel()
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
            self._client = None

    async def __aenter__(self) -> "DynamoDBSessionStore":
        await self._get_client()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Table bootstrap
    # ------------------------------------------------------------------

    async def ensure_table(self) -> bool:
        """Create the sessions table if describing it fails.

        Returns:
            True if a create request was accepted, False otherwise. Failures of
            the create request are logged, not raised.
        """
        client = await self._get_client()
        try:
            await client.describe_table(TableName=self.table)
            logger.debug(f"Session table {self.table} exists")
            return False
        except (ClientError, BotoCoreError) as e:
            logger.info(
                f"Session table {self.table} not available ({e}); creating it",
                extra=log_context(self.table, operation="create_table"),
            )

        try:
            await client.create_table(
                TableName=self.table,
                AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
                KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                ProvisionedThroughput={
                    "ReadCapacityUnits": self.read_capacity,
                    "WriteCapacityUnits": self.write_capacity,
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Failed to create session table {self.table}: {e}",
                extra=log_context(self.table, operation="create_table"),
            )
            return False

        logger.info(f"Requested creation of session table {self.table}")
        return True

    async def _bootstrap(self) -> None:
        try:
            await self.ensure_table()
        except Exception as e:
            logger.error(
                f"Session table bootstrap failed for {self.table}: {e}",
                extra=log_context(self.table, operation="bootstrap"),
            )

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    async def get(self, session_id: str) -> Optional[SessionPayload]:
        """Load a session, deleting it instead if it expired or has no payload"""
        client = await self._get_client()
        now_ms = self._now_ms()

        response = await client.get_item(
            TableName=self.table,
            Key=self._key(session_id),
            ConsistentRead=True,
        )
        item = response.get("Item")
        if not item:
            return None

        record = SessionRecord.from_item(item)
        if record.is_expired(now_ms) or not record.has_payload:
            logger.debug(
                "Discarding expired or empty session",
                extra=log_context(self.table, session_id, operation="get"),
            )
            try:
                await self.destroy(session_id)
            except (ClientError, BotoCoreError) as e:
                logger.warning(
                    f"Failed to delete expired session: {e}",
                    extra=log_context(self.table, session_id, operation="delete_item"),
                )
            return None

        return deserialize_session(record.sess)

    async def set(self, session_id: str, session: SessionPayload) -> None:
        """Write the full session record, replacing any existing one"""
        client = await self._get_client()
        now_ms = self._now_ms()

        record = SessionRecord(
            id=self.prefix + session_id,
            expires=compute_expires(session, now_ms),
            sess=serialize_session(session),
        )
        await client.put_item(TableName=self.table, Item=record.to_item())

    async def touch(self, session_id: str, session: SessionPayload) -> None:
        """Push a session's expiry forward, leaving its payload untouched.

        DynamoDB's UpdateItem upserts: touching an id with no stored session
        creates an item holding only `id` and `expires`, which the next get()
        treats as absent and deletes.
        """
        client = await self._get_client()
        expires = compute_expires(session, self._now_ms())

        await client.update_item(
            TableName=self.table,
            Key=self._key(session_id),
            UpdateExpression="SET #expires = :expires",
            ExpressionAttributeNames={"#expires": "expires"},
            ExpressionAttributeValues={":expires": {"N": str(expires)}},
        )

    async def destroy(self, session_id: str) -> None:
        """Delete a session by its raw (unprefixed) id"""
        client = await self._get_client()
        await client.delete_item(TableName=self.table, Key=self._key(session_id))

    # ------------------------------------------------------------------
    # Expired session sweep
    # ------------------------------------------------------------------

    async def reap(self) -> int:
        """Delete every expired session under this store's prefix.

        Scans the whole table, so it is only suitable as an occasional
        maintenance job.

        Returns:
            Number of sessions deleted
        """
        client = await self._get_client()
        now_ms = self._now_ms()
        reaped = 0

        filter_expression = "#expires < :now"
        values: Dict[str, Dict[str, str]] = {":now": {"N": str(now_ms)}}
        if self.prefix:
            filter_expression += " AND begins_with(#id, :prefix)"
            values[":prefix"] = {"S": self.prefix}

        paginator = client.get_paginator("scan")
        async for page in paginator.paginate(
            TableName=self.table,
            FilterExpression=filter_expression,
            ExpressionAttributeNames={"#expires": "expires", "#id": "id"},
            ExpressionAttributeValues=values,
            ProjectionExpression="#id",
        ):
            for item in page.get("Items", []):
                await self.destroy(item["id"]["S"][len(self.prefix):])
                reaped += 1

        if reaped:
            logger.info(
                f"Reaped {reaped} expired sessions from {self.table}",
                extra=log_context(self.table, operation="reap", count=reaped),
            )
        return reaped

    async def _reap_loop(self) -> None:
        while True:
            await asyncio.sleep(self.reap_interval)
            try:
                await self.reap()
            except Exception as e:
                logger.error(
                    f"Session reap failed for {self.table}: {e}",
                    extra=log_context(self.table, operation="reap"),
                )

    def clear_interval(self) -> None:
        """Cancel the periodic reap, if one is running"""
        if self._reap_task is not None:
            self._reap_task.cancel()
            self._reap_task = None
