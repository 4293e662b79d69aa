"""Wallet routes."""

from fastapi import APIRouter, Depends, Query

from ...models.progress import TransactionType
from ...services.workflow import WorkflowEngine
from ..deps import get_engine

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("")
async def wallet_summary(engine: WorkflowEngine = Depends(get_engine)):
    """Balances and lifetime totals."""
    summary = await engine.ledger.wallet_summary()
    return summary.to_dict()


@router.get("/transactions")
async def list_transactions(
    limit: int = Query(default=20, ge=1, le=100),
    type: TransactionType | None = None,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Most recent transactions first."""
    transactions = await engine.ledger.transactions(limit=limit, transaction_type=type)
    return [t.to_dict() for t in transactions]
