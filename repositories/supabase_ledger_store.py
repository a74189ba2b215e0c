"""
Supabase ledger store (persistence).

Implements the LedgerStore contract on top of supabase-py. It contains no
business rules beyond persistence guards: balance arithmetic and eligibility
live in the domain and service layers.

Multi-row writes (ledger entry + credit limit) go through PostgreSQL
functions defined in `sql/credit_ledger.sql` so they commit atomically:
- apply_credit_transaction_atomic(): locks the limit row (FOR UPDATE), checks
  the expected used_amount, appends the entry and updates the limit.
- change_credit_limit_atomic(): updates limit_amount and appends the
  limit_change entry.
- upsert_credit_limit_atomic(): creates or updates the single active limit
  while preserving the stored used_amount.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.credit_application import ApplicationStatus, CreditApplication
from domain.credit_limit import CreditLimit, CreditLimitStatus
from domain.credit_transaction import CreditTransaction, TransactionType
from domain.errors import ConcurrentModification, InvalidState, NotFound, StoreUnavailable
from domain.settings import CreditLimitSettings
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.ledger_store import NewCreditTransaction

logger = logging.getLogger(__name__)

# Supabase table names.
# Keep these aligned with sql/credit_ledger.sql.
_LIMITS_TABLE: str = "credit_limits"
_TRANSACTIONS_TABLE: str = "credit_transactions"
_APPLICATIONS_TABLE: str = "credit_applications"
_SETTINGS_TABLE: str = "credit_limit_settings"
_SETTINGS_ROW_ID: int = 1

# Error codes returned by the RPC functions.
_RPC_ERRORS = {
    "CONCURRENT_MODIFICATION": ConcurrentModification,
    "NO_ACTIVE_LIMIT": InvalidState,
    "INVALID_STATE": InvalidState,
}


def _opt_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value is not None else None


def _opt_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value is not None else None


def _opt_decimal(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def _row_to_limit(row: Mapping[str, Any]) -> CreditLimit:
    """Convert a Supabase row into a CreditLimit."""

    return CreditLimit(
        id=UUID(str(row["id"])),
        client_id=UUID(str(row["client_id"])),
        limit_amount=Decimal(str(row["limit_amount"])),
        used_amount=Decimal(str(row["used_amount"])),
        status=CreditLimitStatus(str(row["status"])),
        is_active=bool(row["is_active"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
        due_date=_opt_datetime(row.get("due_date_utc")),
        approved_by=row.get("approved_by"),
        notes=row.get("notes"),
    )


def _row_to_transaction(row: Mapping[str, Any]) -> CreditTransaction:
    """Convert a Supabase row into a CreditTransaction."""

    return CreditTransaction(
        id=UUID(str(row["id"])),
        credit_limit_id=UUID(str(row["credit_limit_id"])),
        client_id=UUID(str(row["client_id"])),
        type=TransactionType(str(row["transaction_type"])),
        amount=Decimal(str(row["amount"])),
        balance_before=Decimal(str(row["balance_before"])),
        balance_after=Decimal(str(row["balance_after"])),
        description=str(row.get("description") or ""),
        performed_by=str(row["performed_by"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        sale_id=_opt_uuid(row.get("sale_id")),
        reference_id=row.get("reference_id"),
    )


def _row_to_application(row: Mapping[str, Any]) -> CreditApplication:
    """Convert a Supabase row into a CreditApplication."""

    return CreditApplication(
        id=UUID(str(row["id"])),
        client_id=UUID(str(row["client_id"])),
        requested_limit=Decimal(str(row["requested_limit"])),
        current_limit_at_request=Decimal(str(row["current_limit_at_request"])),
        reason=str(row.get("reason") or ""),
        status=ApplicationStatus(str(row["status"])),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        approved_limit=_opt_decimal(row.get("approved_limit")),
        approved_by=row.get("approved_by"),
        approved_at=_opt_datetime(row.get("approved_at_utc")),
        rejected_reason=row.get("rejected_reason"),
        decided_at=_opt_datetime(row.get("decided_at_utc")),
    )


def _application_to_row(app: CreditApplication) -> Dict[str, Any]:
    return {
        "id": str(app.id),
        "client_id": str(app.client_id),
        "requested_limit": str(app.requested_limit),
        "current_limit_at_request": str(app.current_limit_at_request),
        "reason": app.reason,
        "status": app.status.value,
        "created_at_utc": to_iso_utc(app.created_at, name="created_at"),
        "approved_limit": str(app.approved_limit) if app.approved_limit is not None else None,
        "approved_by": app.approved_by,
        "approved_at_utc": to_iso_utc(app.approved_at, name="approved_at") if app.approved_at else None,
        "rejected_reason": app.rejected_reason,
        "decided_at_utc": to_iso_utc(app.decided_at, name="decided_at") if app.decided_at else None,
    }


class SupabaseLedgerStore:
    """LedgerStore backed by Supabase tables and RPC functions."""

    def __init__(self, client: Client) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _execute(self, query: Any, action: str) -> List[Dict[str, Any]]:
        """Run a query builder, translating transport and API failures to StoreUnavailable."""

        try:
            response = query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Supabase call failed: {action}", extra={"action": action, "error": str(e)})
            raise StoreUnavailable(f"Failed to {action}: {e}") from e

        error = getattr(response, "error", None)
        if error:
            logger.error(f"Supabase call failed: {action}", extra={"action": action, "error": str(error)})
            raise StoreUnavailable(f"Failed to {action}: {error}")

        data = getattr(response, "data", None)
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    def _call_rpc(self, function: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call an atomic PostgreSQL function returning a JSON object with a
        `success` flag.

        supabase-py raises APIError when a function returns JSON, for both
        success and error payloads, so the payload is recovered from the
        exception before deciding.
        """

        try:
            response = self._client.rpc(function, params).execute()
            result = response.data
        except APIError as e:
            try:
                result = e.json() if callable(getattr(e, "json", None)) else {}
            except ValueError:
                result = {}
            if not isinstance(result, dict) or "success" not in result:
                raise StoreUnavailable(f"RPC {function} failed: {e}") from e
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"RPC {function} failed: {e}") from e

        if not isinstance(result, dict):
            raise StoreUnavailable(f"RPC {function} returned an unexpected payload: {result!r}")

        if result.get("success") is True:
            return result

        code = str(result.get("error", "RPC_ERROR"))
        message = str(result.get("message") or code)
        raise _RPC_ERRORS.get(code, StoreUnavailable)(message)

    # ------------------------------------------------------------------
    # Credit limits
    # ------------------------------------------------------------------

    def get_credit_limit(self, client_id: UUID) -> Optional[CreditLimit]:
        rows = self._execute(
            self._client.table(_LIMITS_TABLE)
            .select("*")
            .eq("client_id", str(client_id))
            .eq("is_active", True)
            .limit(1),
            "fetch credit limit",
        )
        return _row_to_limit(rows[0]) if rows else None

    def list_credit_limits(self, *, active_only: bool = True) -> List[CreditLimit]:
        query = self._client.table(_LIMITS_TABLE).select("*")
        if active_only:
            query = query.eq("is_active", True)
        return [_row_to_limit(row) for row in self._execute(query, "list credit limits")]

    def upsert_credit_limit(
        self,
        client_id: UUID,
        limit_amount: Decimal,
        *,
        actor: str,
        notes: Optional[str] = None,
    ) -> CreditLimit:
        result = self._call_rpc(
            "upsert_credit_limit_atomic",
            {
                "p_client_id": str(client_id),
                "p_limit_amount": str(limit_amount),
                "p_actor": actor,
                "p_notes": notes,
            },
        )
        return _row_to_limit(result["credit_limit"])

    def set_credit_limit_status(self, client_id: UUID, status: CreditLimitStatus, *, actor: str) -> CreditLimit:
        rows = self._execute(
            self._client.table(_LIMITS_TABLE)
            .update({
                "status": status.value,
                "approved_by": actor,
                "updated_at_utc": utc_now().isoformat(),
            })
            .eq("client_id", str(client_id))
            .eq("is_active", True),
            "update credit limit status",
        )
        if not rows:
            raise InvalidState(f"Client {client_id} has no active credit limit")
        return _row_to_limit(rows[0])

    def change_credit_limit(
        self,
        client_id: UUID,
        limit_amount: Decimal,
        *,
        actor: str,
        description: str,
        notes: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> Tuple[CreditLimit, CreditTransaction]:
        result = self._call_rpc(
            "change_credit_limit_atomic",
            {
                "p_client_id": str(client_id),
                "p_limit_amount": str(limit_amount),
                "p_actor": actor,
                "p_notes": notes,
                "p_description": description,
                "p_reference_id": reference_id,
            },
        )
        return _row_to_limit(result["credit_limit"]), _row_to_transaction(result["transaction"])

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def list_transactions(self, credit_limit_id: UUID, *, limit: Optional[int] = None) -> List[CreditTransaction]:
        query = (
            self._client.table(_TRANSACTIONS_TABLE)
            .select("*")
            .eq("credit_limit_id", str(credit_limit_id))
            .order("seq", desc=True)
        )
        if limit is not None:
            query = query.limit(limit)
        return [_row_to_transaction(row) for row in self._execute(query, "list credit transactions")]

    def append_transaction(self, entry: NewCreditTransaction) -> CreditTransaction:
        payload: Dict[str, Any] = {
            "credit_limit_id": str(entry.credit_limit_id),
            "client_id": str(entry.client_id),
            "transaction_type": entry.type.value,
            "amount": str(entry.amount),
            "balance_before": str(entry.balance_before),
            "balance_after": str(entry.balance_after),
            "description": entry.description,
            "performed_by": entry.performed_by,
            "sale_id": str(entry.sale_id) if entry.sale_id else None,
            "reference_id": entry.reference_id,
        }
        # Single-row insert: either the full entry exists or nothing does.
        rows = self._execute(self._client.table(_TRANSACTIONS_TABLE).insert(payload), "record credit transaction")
        if not rows:
            raise StoreUnavailable("Failed to record credit transaction: no row returned")
        return _row_to_transaction(rows[0])

    def apply_transaction(
        self,
        entry: NewCreditTransaction,
        *,
        expected_used_amount: Decimal,
        due_date: Optional[datetime],
    ) -> Tuple[CreditLimit, CreditTransaction]:
        result = self._call_rpc(
            "apply_credit_transaction_atomic",
            {
                "p_credit_limit_id": str(entry.credit_limit_id),
                "p_client_id": str(entry.client_id),
                "p_type": entry.type.value,
                "p_amount": str(entry.amount),
                "p_balance_before": str(entry.balance_before),
                "p_balance_after": str(entry.balance_after),
                "p_description": entry.description,
                "p_performed_by": entry.performed_by,
                "p_sale_id": str(entry.sale_id) if entry.sale_id else None,
                "p_reference_id": entry.reference_id,
                "p_expected_used_amount": str(expected_used_amount),
                "p_due_date": to_iso_utc(due_date, name="due_date") if due_date else None,
            },
        )
        return _row_to_limit(result["credit_limit"]), _row_to_transaction(result["transaction"])

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def list_applications(self, client_id: UUID) -> List[CreditApplication]:
        rows = self._execute(
            self._client.table(_APPLICATIONS_TABLE)
            .select("*")
            .eq("client_id", str(client_id))
            .order("created_at_utc", desc=True),
            "list credit applications",
        )
        return [_row_to_application(row) for row in rows]

    def get_application(self, application_id: UUID) -> Optional[CreditApplication]:
        rows = self._execute(
            self._client.table(_APPLICATIONS_TABLE).select("*").eq("id", str(application_id)).limit(1),
            "fetch credit application",
        )
        return _row_to_application(rows[0]) if rows else None

    def insert_application(self, application: CreditApplication) -> CreditApplication:
        rows = self._execute(
            self._client.table(_APPLICATIONS_TABLE).insert(_application_to_row(application)),
            "create credit application",
        )
        return _row_to_application(rows[0]) if rows else application

    def update_application(
        self,
        application: CreditApplication,
        *,
        expected_status: ApplicationStatus,
    ) -> CreditApplication:
        payload = _application_to_row(application)
        # Immutable columns are never rewritten.
        for column in ("id", "client_id", "requested_limit", "current_limit_at_request", "created_at_utc"):
            payload.pop(column)

        # The status filter makes the transition single-fire under concurrency.
        rows = self._execute(
            self._client.table(_APPLICATIONS_TABLE)
            .update(payload)
            .eq("id", str(application.id))
            .eq("status", expected_status.value),
            "update credit application",
        )
        if rows:
            return _row_to_application(rows[0])

        stored = self.get_application(application.id)
        if stored is None:
            raise NotFound(f"Application {application.id} not found")
        raise InvalidState(
            f"Application {application.id} is {stored.status.value}, expected {expected_status.value}"
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> CreditLimitSettings:
        rows = self._execute(
            self._client.table(_SETTINGS_TABLE).select("*").eq("id", _SETTINGS_ROW_ID).limit(1),
            "fetch credit limit settings",
        )
        if not rows:
            return CreditLimitSettings()
        return CreditLimitSettings.from_mapping(rows[0])

    def update_settings(self, patch: Mapping[str, Any]) -> CreditLimitSettings:
        merged = self.get_settings().merged(patch)
        payload: Dict[str, Any] = {"id": _SETTINGS_ROW_ID}
        for name, value in merged.to_dict().items():
            payload[name] = str(value) if isinstance(value, Decimal) else value
        rows = self._execute(
            self._client.table(_SETTINGS_TABLE).upsert(payload),
            "update credit limit settings",
        )
        return CreditLimitSettings.from_mapping(rows[0]) if rows else merged


__all__ = ["SupabaseLedgerStore"]
