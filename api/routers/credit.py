"""
Credit API Endpoints.

Per-client credit account: limit, eligibility checks, ledger postings and
limit change applications.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import LedgerServices, get_services
from api.models import (
    ApplicationRequest,
    ApplicationResponse,
    CreditLimitResponse,
    CreditSnapshotResponse,
    CreditStatusResponse,
    DecisionRequest,
    EligibilityRequest,
    EligibilityResponse,
    LimitUpdateRequest,
    StatusUpdateRequest,
    TransactionListResponse,
    TransactionRequest,
    TransactionResponse,
)
from domain.errors import NotFound
from services.credit_session import CreditSession

router = APIRouter(prefix="/clients/{client_id}/credit")


def _session(client_id: UUID, services: LedgerServices, actor: Optional[str] = None) -> CreditSession:
    return CreditSession(
        client_id,
        store=services.store,
        settings=services.settings,
        ledger=services.ledger,
        workflow=services.workflow,
        actor=actor or services.config.default_actor,
    )


@router.get(
    "",
    response_model=CreditSnapshotResponse,
    summary="Get Credit Overview",
    description="Active credit limit of the client with its status band and utilization."
)
def get_credit(client_id: UUID, services: LedgerServices = Depends(get_services)):
    """
    Credit overview for a client.

    `credit_limit` is null when the client has no account yet; the status is
    then `no_limit`.
    """
    session = _session(client_id, services)
    session.refresh()
    return CreditSnapshotResponse(
        client_id=client_id,
        credit_limit=CreditLimitResponse.from_domain(session.credit_limit) if session.credit_limit else None,
        status=CreditStatusResponse.from_domain(session.get_status()),
        utilization=session.get_utilization(),
    )


@router.put(
    "/limit",
    response_model=CreditLimitResponse,
    summary="Set Credit Limit",
    description="Open the account or change its limit. Every change is recorded as a limit_change entry."
)
def set_credit_limit(
    client_id: UUID,
    request: LimitUpdateRequest,
    services: LedgerServices = Depends(get_services),
):
    session = _session(client_id, services, request.actor)
    limit = session.create_or_update_limit(request.limit_amount, request.notes)
    return CreditLimitResponse.from_domain(limit)


@router.put(
    "/status",
    response_model=CreditLimitResponse,
    summary="Set Credit Status",
    description="Suspend, block or re-activate the client's credit."
)
def set_credit_status(
    client_id: UUID,
    request: StatusUpdateRequest,
    services: LedgerServices = Depends(get_services),
):
    session = _session(client_id, services, request.actor)
    return CreditLimitResponse.from_domain(session.set_status(request.status))


@router.post(
    "/eligibility",
    response_model=EligibilityResponse,
    summary="Check Purchase Eligibility",
)
def check_eligibility(
    client_id: UUID,
    request: EligibilityRequest,
    services: LedgerServices = Depends(get_services),
):
    """
    Check whether a purchase of `amount` may be made on credit.

    Advisory only: the purchase itself is re-checked when it is posted.
    """
    session = _session(client_id, services)
    session.refresh()
    return EligibilityResponse.from_domain(session.check_eligibility(request.amount))


@router.post(
    "/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post Transaction",
    description="Post a purchase, payment or adjustment against the client's credit limit."
)
def post_transaction(
    client_id: UUID,
    request: TransactionRequest,
    services: LedgerServices = Depends(get_services),
):
    """
    Post a ledger entry.

    **Errors:**
    - 400: invalid type or amount (`limit_change` is not accepted here)
    - 409: no active limit, account suspended/blocked, insufficient credit
      or the balance kept changing concurrently
    """
    session = _session(client_id, services, request.actor)
    transaction = session.record_transaction(
        request.type,
        request.amount,
        request.description,
        request.sale_id,
        enforce_limit=request.enforce_limit,
    )
    return TransactionResponse.from_domain(transaction)


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    summary="List Transactions",
    description="Ledger entries of the client's active limit, newest first."
)
def list_transactions(
    client_id: UUID,
    limit: int = Query(50, ge=1, le=500, description="Maximum number of entries"),
    services: LedgerServices = Depends(get_services),
):
    entries = services.ledger.transactions(client_id, limit=limit)
    items = [TransactionResponse.from_domain(t) for t in entries]
    return TransactionListResponse(items=items, total_count=len(items))


@router.post(
    "/applications",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Credit Application",
    description="Request a new credit limit. Small requests are approved automatically."
)
def submit_application(
    client_id: UUID,
    request: ApplicationRequest,
    services: LedgerServices = Depends(get_services),
):
    session = _session(client_id, services, request.actor)
    application = session.submit_application(request.requested_limit, request.reason)
    return ApplicationResponse.from_domain(application)


@router.get(
    "/applications",
    response_model=List[ApplicationResponse],
    summary="List Credit Applications",
)
def list_applications(client_id: UUID, services: LedgerServices = Depends(get_services)):
    return [ApplicationResponse.from_domain(a) for a in services.workflow.list(client_id)]


@router.post(
    "/applications/{application_id}/decision",
    response_model=ApplicationResponse,
    summary="Decide Credit Application",
)
def decide_application(
    client_id: UUID,
    application_id: UUID,
    request: DecisionRequest,
    services: LedgerServices = Depends(get_services),
):
    """
    Approve or reject a pending application.

    Approving changes the limit (default: the requested limit) and records
    a `limit_change` entry referencing the application. A second decision on
    the same application fails with 409.
    """
    application = services.workflow.get(application_id)
    if application.client_id != client_id:
        raise NotFound(f"Application {application_id} not found")

    session = _session(client_id, services, request.actor)
    decided = session.decide_application(
        application_id,
        request.decision,
        approved_limit=request.approved_limit,
        rejected_reason=request.rejected_reason,
    )
    return ApplicationResponse.from_domain(decided)
