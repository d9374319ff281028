"""API endpoints for response rule management."""

from fastapi import APIRouter, Depends, HTTPException

from autoreply.api.dependencies import get_autoreply_engine
from autoreply.errors import RuleNotFoundError
from autoreply.models.domain import CreateRuleRequest, ResponseRule, UpdateRuleRequest
from autoreply.services.engine import AutoReplyEngine

router = APIRouter(prefix="/rules", tags=["rules"])


@router.post("", response_model=ResponseRule, status_code=201)
async def create_rule(
    request: CreateRuleRequest,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
) -> ResponseRule:
    """Create a new response rule.

    Args:
        request: Rule creation request
        engine: Auto-reply engine

    Returns:
        Created rule
    """
    return await engine.rule_store.create(request)


@router.get("", response_model=list[ResponseRule])
async def list_rules(
    is_active: bool | None = None,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
) -> list[ResponseRule]:
    """List rules in creation order.

    Args:
        is_active: Optional filter by active status
        engine: Auto-reply engine

    Returns:
        List of rules
    """
    rules = await engine.rule_store.list()
    if is_active is not None:
        rules = [rule for rule in rules if rule.is_active == is_active]
    return rules


@router.get("/{rule_id}", response_model=ResponseRule)
async def get_rule(
    rule_id: str,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
) -> ResponseRule:
    """Get rule details by ID.

    Raises:
        HTTPException: If rule not found
    """
    try:
        return await engine.rule_store.get(rule_id)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.patch("/{rule_id}", response_model=ResponseRule)
async def update_rule(
    rule_id: str,
    request: UpdateRuleRequest,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
) -> ResponseRule:
    """Update a rule.

    Args:
        rule_id: Rule identifier
        request: Update request, unset fields are left unchanged
        engine: Auto-reply engine

    Returns:
        Updated rule

    Raises:
        HTTPException: If rule not found
    """
    try:
        return await engine.rule_store.update(rule_id, request)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: str,
    engine: AutoReplyEngine = Depends(get_autoreply_engine),
):
    """Delete a rule.

    Raises:
        HTTPException: If rule not found
    """
    try:
        await engine.rule_store.delete(rule_id)
        return {"message": "Rule deleted successfully"}
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
