"""Service for managing operator-authored response rules."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from uuid import uuid4

from autoreply.database.base import KeyValueStore
from autoreply.errors import RuleNotFoundError
from autoreply.models.domain import CreateRuleRequest, ResponseRule, UpdateRuleRequest, utc_now

logger = logging.getLogger(__name__)

# Fields an update may never change
_IMMUTABLE_FIELDS = {"id", "sequence", "created_at", "updated_at"}


class RuleStore:
    """Manages rule lifecycle: creation, update, deletion, listing.

    Each rule is stored whole under its own key and only ever replaced whole,
    so a concurrent reader sees either the old or the new record. An index key
    keeps the ordered id list and a sequence key feeds creation order.
    """

    def __init__(self, storage: KeyValueStore, namespace: str = "default"):
        """Initialize with a key-value store.

        Args:
            storage: Backing key-value store
            namespace: Key prefix, one per tenant sharing the store
        """
        self.storage = storage
        self.namespace = namespace
        self._write_lock = asyncio.Lock()

    def _rule_key(self, rule_id: str) -> str:
        return f"{self.namespace}:rules:{rule_id}"

    @property
    def _index_key(self) -> str:
        return f"{self.namespace}:rules:index"

    @property
    def _sequence_key(self) -> str:
        return f"{self.namespace}:rules:sequence"

    async def list(self) -> list[ResponseRule]:
        """List all rules in creation order.

        Returns:
            Fresh copies of the stored rules
        """
        rules = []
        for rule_id in await self._read_index():
            rule = await self._read_rule(rule_id)
            if rule is None:
                logger.warning(f"Rule {rule_id} listed in index but missing from storage")
                continue
            rules.append(rule)
        return rules

    async def get(self, rule_id: str) -> ResponseRule:
        """Get rule by ID.

        Raises:
            RuleNotFoundError: If rule not found
        """
        rule = await self._read_rule(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    async def create(self, request: CreateRuleRequest | dict[str, Any]) -> ResponseRule:
        """Create a new rule.

        Args:
            request: Rule definition without identifier

        Returns:
            Created rule with generated id and creation sequence
        """
        if isinstance(request, dict):
            request = CreateRuleRequest.model_validate(request)

        async with self._write_lock:
            sequence = await self._next_sequence()
            now = utc_now()
            rule = ResponseRule(
                **request.model_dump(),
                id=str(uuid4()),
                sequence=sequence,
                created_at=now,
                updated_at=now,
            )
            await self._write_rule(rule)

            index = await self._read_index()
            index.append(rule.id)
            await self._write_index(index)

        logger.info(f"Created rule {rule.id} ({rule.name}) with priority {rule.priority}")
        return rule.model_copy(deep=True)

    async def update(self, rule_id: str, partial: UpdateRuleRequest | dict[str, Any]) -> ResponseRule:
        """Update rule configuration.

        Args:
            rule_id: Rule identifier
            partial: Fields to change

        Returns:
            Updated rule

        Raises:
            RuleNotFoundError: If rule not found
        """
        if isinstance(partial, UpdateRuleRequest):
            changes = partial.model_dump(exclude_none=True)
        else:
            changes = dict(partial)
        for field in _IMMUTABLE_FIELDS & changes.keys():
            logger.warning(f"Ignoring attempt to change {field} of rule {rule_id}")
            changes.pop(field)

        async with self._write_lock:
            current = await self._read_rule(rule_id)
            if current is None:
                raise RuleNotFoundError(rule_id)

            merged = current.model_dump()
            merged.update(changes)
            merged["updated_at"] = utc_now()
            updated = ResponseRule.model_validate(merged)
            await self._write_rule(updated)

        logger.info(f"Updated rule {rule_id}")
        return updated.model_copy(deep=True)

    async def delete(self, rule_id: str) -> None:
        """Delete a rule.

        Raises:
            RuleNotFoundError: If rule not found
        """
        async with self._write_lock:
            index = await self._read_index()
            if rule_id not in index:
                raise RuleNotFoundError(rule_id)

            index.remove(rule_id)
            await self._write_index(index)
            await self.storage.delete(self._rule_key(rule_id))

        logger.info(f"Deleted rule {rule_id}")

    async def _read_rule(self, rule_id: str) -> ResponseRule | None:
        raw = await self.storage.get(self._rule_key(rule_id))
        if raw is None:
            return None
        return ResponseRule.model_validate_json(raw)

    async def _write_rule(self, rule: ResponseRule) -> None:
        await self.storage.put(self._rule_key(rule.id), rule.model_dump_json().encode("utf-8"))

    async def _read_index(self) -> list[str]:
        raw = await self.storage.get(self._index_key)
        if raw is None:
            return []
        return json.loads(raw.decode("utf-8"))

    async def _write_index(self, index: list[str]) -> None:
        await self.storage.put(self._index_key, json.dumps(index).encode("utf-8"))

    async def _next_sequence(self) -> int:
        raw = await self.storage.get(self._sequence_key)
        sequence = int(raw.decode("utf-8")) + 1 if raw is not None else 1
        await self.storage.put(self._sequence_key, str(sequence).encode("utf-8"))
        return sequence
