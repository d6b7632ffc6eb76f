"""
Bill Schedule Service (``household_bills.services.reconciliation``).

Responsibility
--------------
Creates, updates, archives and deletes recurring bill series and keeps each
series' materialized instances in line with its recurrence rule.  When a
schedule field really changes, every unpaid instance is dropped and the
calendar is regenerated; paid instances are left exactly as they are.

Architecture position
---------------------
**Services layer** -- the facade callers use.  ``BillScheduleService`` is
the only class that owns a transaction boundary: each public method
commits on success and rolls back on any failure.  Generation and diffing
are delegated to the pure domain (``generate_occurrences``,
``plan_regeneration``); row access to the flush-only ``InstanceStore``.

Invariants enforced
-------------------
* All-or-nothing: the template change, the deletions and the insertions of
  one call commit together or not at all.
* Paid instances are never deleted or rewritten by reconciliation.
* At most one instance per (series, due date).
* Same-series writers are serialized by ``SELECT ... FOR UPDATE`` on the
  series row; a writer that slips past the lock trips the unique key or the
  series' version counter instead of corrupting the calendar.

Failure modes
-------------
* Malformed template or patch  -> ``ConfigurationError`` subclass;
  nothing written.
* Unknown ids  -> ``SeriesNotFoundError`` / ``InstanceNotFoundError``.
* Concurrent regeneration  -> ``ConflictError`` (retryable); rolled back.
* Changing a paid instance  -> ``ImmutabilityViolationError``.
* Anything else  -> session rolled back, exception re-raised.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from household_bills.config import EngineConfig
from household_bills.domain.clock import Clock, SystemClock
from household_bills.domain.dtos import (
    InstanceInfo,
    ReconciliationResult,
    SeriesInfo,
    SeriesTemplate,
    SplitSpec,
)
from household_bills.domain.patch import UNSET, SeriesPatch, schedule_changes
from household_bills.domain.recurrence import (
    RecurrenceType,
    generate_occurrences,
    horizon_from,
    normalize_day,
    validate_recurrence,
)
from household_bills.domain.regeneration import plan_regeneration
from household_bills.domain.validation import (
    require_text,
    to_amount,
    validate_category_assignment,
    validate_schedule,
)
from household_bills.exceptions import (
    ConflictError,
    ImmutabilityViolationError,
    InstanceNotFoundError,
    InvalidCategoryAssignmentError,
    InvalidRecurrenceError,
    InvalidTemplateError,
    SeriesNotFoundError,
)
from household_bills.logging_config import LogContext, get_logger
from household_bills.models.instance import BillInstance, is_paid_clause
from household_bills.models.series import BillSplit, RecurringBillSeries
from household_bills.services.category_resolver import (
    CategoryResolver,
    OrmCategoryResolver,
)
from household_bills.services.instance_store import InstanceStore

logger = get_logger("services.reconciliation")


class BillScheduleService:
    """
    Facade for recurring bill series and their instance calendars.

    Contract
    --------
    * ``create_series`` / ``update_series`` return a ``ReconciliationResult``
      listing the post-reconciliation instance set.
    * A patch whose schedule fields all equal the stored values does not
      touch instances.

    Guarantees
    ----------
    * Session committed only when the whole operation succeeded.
    * Clock and config are injectable for deterministic testing.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
        category_resolver: CategoryResolver | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or EngineConfig.with_defaults()
        self._categories = category_resolver or OrmCategoryResolver(session)
        self._instances = InstanceStore(session)

    # =========================================================================
    # Series lifecycle
    # =========================================================================

    def create_series(self, template: SeriesTemplate) -> ReconciliationResult:
        """Persist a new series and materialize its occurrences."""
        series_id = uuid4()
        with LogContext.bind(series_id=series_id, budget_id=template.budget_id):
            with self._unit_of_work("create_series", series_id):
                series = self._build_series(series_id, template)
                self._session.add(series)
                self._session.flush()

                dates = self._generate(series)
                created = self._instances.create(
                    series.id, dates, series.estimated_amount
                )
                result = self._result(series, regenerated=True, created_count=created)

            logger.info(
                "series_created",
                extra={
                    "recurrence_type": series.recurrence_type,
                    "start_date": series.start_date,
                    "instance_count": created,
                },
            )
        return result

    def update_series(self, series_id: UUID, patch: SeriesPatch) -> ReconciliationResult:
        """
        Apply ``patch`` to a series, regenerating unpaid instances if the
        schedule changed.

        Raises:
            SeriesNotFoundError: Unknown series.
            ConfigurationError: The patched template is not well formed.
            ConflictError: Another writer regenerated the series concurrently.
        """
        with LogContext.bind(series_id=series_id):
            with self._unit_of_work("update_series", series_id):
                series = self._lock_series(series_id)
                self._check_patch_values(patch)
                changes = schedule_changes(patch, series)

                self._apply_details(series, patch)
                for name, value in changes.items():
                    setattr(series, name, _column_value(value))
                self._validate_series(series)
                self._session.flush()

                if not changes:
                    logger.info(
                        "series_update_skipped_regeneration",
                        extra={"fields": sorted(patch.provided())},
                    )
                    result = self._result(series, regenerated=False)
                else:
                    result = self._regenerate(series, sorted(changes))

        return result

    def archive_series(self, series_id: UUID, archived: bool = True) -> SeriesInfo:
        """Set or clear the archived flag; never regenerates."""
        return self.update_series(series_id, SeriesPatch(is_archived=archived)).series

    def delete_series(self, series_id: UUID) -> bool:
        """
        Delete a series with all of its instances, paid or not.

        Linked transactions survive with their bill links cleared.

        Returns:
            False when the series does not exist.
        """
        with LogContext.bind(series_id=series_id):
            with self._unit_of_work("delete_series", series_id):
                series = self._find_series_for_update(series_id)
                if series is None:
                    return False

                # A series and its instances must be deleted in one flush.
                with self._session.no_autoflush:
                    instance_count = len(series.instances)
                    self._session.delete(series)
                self._session.flush()

            logger.info("series_deleted", extra={"instance_count": instance_count})
        return True

    # =========================================================================
    # Instance adjustments
    # =========================================================================

    def adjust_instance_amount(self, instance_id: UUID, amount: Decimal) -> InstanceInfo:
        """
        Change the amount of a single unpaid instance.

        Raises:
            InstanceNotFoundError: Unknown instance.
            ImmutabilityViolationError: The instance is paid.
        """
        with self._unit_of_work("adjust_instance_amount"):
            row = self._session.execute(
                select(BillInstance, is_paid_clause().label("is_paid"))
                .where(BillInstance.id == instance_id)
                .with_for_update(of=BillInstance)
                .execution_options(populate_existing=True)
            ).one_or_none()
            if row is None:
                raise InstanceNotFoundError(str(instance_id))
            instance, paid = row

            if paid:
                logger.error(
                    "immutability_violation_blocked",
                    extra={
                        "entity_type": "BillInstance",
                        "entity_id": str(instance_id),
                        "operation": "UPDATE",
                        "reason": "instance_is_paid",
                    },
                )
                raise ImmutabilityViolationError(
                    entity_type="BillInstance",
                    entity_id=str(instance_id),
                    reason="Paid bill instances cannot change amount",
                )

            instance.amount = to_amount(amount, "amount")
            self._session.flush()
            info = instance.to_dto(is_paid=False)

        logger.info(
            "instance_amount_adjusted",
            extra={"instance_id": str(instance_id), "amount": info.amount},
        )
        return info

    # =========================================================================
    # Internals
    # =========================================================================

    @contextmanager
    def _unit_of_work(self, operation: str, series_id: UUID | None = None) -> Iterator[None]:
        """Commit on success; roll back and re-raise (or map) on failure."""
        try:
            yield
            self._session.commit()
        except (IntegrityError, StaleDataError) as exc:
            self._session.rollback()
            logger.warning(
                "reconciliation_conflict",
                extra={"operation": operation, "error": type(exc).__name__},
            )
            raise ConflictError(
                str(series_id),
                "concurrent modification detected; retry the request",
            ) from exc
        except Exception:
            self._session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise

    def _find_series_for_update(self, series_id: UUID) -> RecurringBillSeries | None:
        return self._session.execute(
            select(RecurringBillSeries)
            .where(RecurringBillSeries.id == series_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_series(self, series_id: UUID) -> RecurringBillSeries:
        series = self._find_series_for_update(series_id)
        if series is None:
            raise SeriesNotFoundError(str(series_id))
        return series

    def _generate(self, series: RecurringBillSeries) -> tuple[date, ...]:
        horizon = horizon_from(self._clock.today(), self._config.horizon_months)
        return generate_occurrences(
            series.start_date,
            series.recurrence_type,
            series.custom_interval_days,
            horizon,
            series.last_payment_date,
        )

    def _regenerate(
        self, series: RecurringBillSeries, changed_fields: list[str]
    ) -> ReconciliationResult:
        plan = plan_regeneration(
            self._instances.list_for_series(series.id),
            self._generate(series),
        )
        deleted = self._instances.delete(series.id, plan.delete_ids)
        created = self._instances.create(
            series.id, plan.insert_dates, series.estimated_amount
        )

        logger.info(
            "series_reconciled",
            extra={
                "changed_fields": changed_fields,
                "deleted_count": deleted,
                "created_count": created,
                "kept_paid_count": len(plan.kept_paid_dates),
                "skipped_paid_count": len(plan.skipped_paid_dates),
            },
        )
        return self._result(
            series,
            regenerated=True,
            deleted_count=deleted,
            created_count=created,
            skipped_paid_dates=plan.skipped_paid_dates,
        )

    def _result(
        self,
        series: RecurringBillSeries,
        regenerated: bool,
        deleted_count: int = 0,
        created_count: int = 0,
        skipped_paid_dates: tuple[date, ...] = (),
    ) -> ReconciliationResult:
        return ReconciliationResult(
            series=series.to_dto(),
            instances=self._instances.list_for_series(series.id),
            regenerated=regenerated,
            deleted_count=deleted_count,
            created_count=created_count,
            skipped_paid_dates=skipped_paid_dates,
        )

    # -- template handling ----------------------------------------------------

    def _build_series(
        self, series_id: UUID, template: SeriesTemplate
    ) -> RecurringBillSeries:
        name = require_text(template.name, "name")
        recipient = require_text(template.recipient, "recipient")
        rtype, amount = validate_schedule(
            template.recurrence_type,
            template.custom_interval_days,
            template.estimated_amount,
        )
        _require_id(template.account_id, "account_id")
        _require_id(template.budget_id, "budget_id")
        if not isinstance(template.start_date, date):
            raise InvalidTemplateError("start_date", "must be a date")
        validate_category_assignment(
            template.category_id,
            template.category_name,
            template.splits,
            amount,
        )

        series = RecurringBillSeries(
            id=series_id,
            name=name,
            recipient=recipient,
            account_id=template.account_id,
            budget_id=template.budget_id,
            household_id=template.household_id,
            start_date=normalize_day(template.start_date),
            recurrence_type=rtype.value,
            custom_interval_days=template.custom_interval_days,
            estimated_amount=amount,
            last_payment_date=(
                normalize_day(template.last_payment_date)
                if template.last_payment_date is not None
                else None
            ),
            is_archived=bool(template.is_archived),
        )
        if template.splits:
            series.category_id = None
            series.splits = self._build_splits(template.household_id, template.splits)
        else:
            series.category_id = self._resolve_category(
                template.household_id, template.category_id, template.category_name
            )
        return series

    def _check_patch_values(self, patch: SeriesPatch) -> None:
        """Reject patch values that cannot even be compared with stored ones."""
        if patch.recurrence_type is not UNSET:
            try:
                RecurrenceType(patch.recurrence_type)
            except ValueError:
                raise InvalidRecurrenceError(
                    str(patch.recurrence_type),
                    None if patch.custom_interval_days is UNSET else patch.custom_interval_days,
                    "unknown recurrence type",
                ) from None
        if patch.estimated_amount is not UNSET:
            to_amount(patch.estimated_amount)
        if patch.start_date is not UNSET and not isinstance(patch.start_date, date):
            raise InvalidTemplateError("start_date", "must be a date")
        last_paid = patch.last_payment_date
        if last_paid is not UNSET and last_paid is not None and not isinstance(last_paid, date):
            raise InvalidTemplateError("last_payment_date", "must be a date or None")

    def _apply_details(self, series: RecurringBillSeries, patch: SeriesPatch) -> None:
        if patch.name is not UNSET:
            series.name = require_text(patch.name, "name")
        if patch.recipient is not UNSET:
            series.recipient = require_text(patch.recipient, "recipient")
        if patch.account_id is not UNSET:
            series.account_id = _require_id(patch.account_id, "account_id")
        if patch.is_archived is not UNSET:
            series.is_archived = bool(patch.is_archived)
        self._apply_category(series, patch)

    def _apply_category(self, series: RecurringBillSeries, patch: SeriesPatch) -> None:
        category_set = patch.category_id is not UNSET or patch.category_name is not UNSET
        splits_set = patch.splits is not UNSET
        if not category_set and not splits_set:
            return

        category_id = None if patch.category_id is UNSET else patch.category_id
        category_name = None if patch.category_name is UNSET else patch.category_name
        splits: Sequence[SplitSpec] = tuple(patch.splits) if splits_set else ()

        amount = (
            to_amount(patch.estimated_amount)
            if patch.estimated_amount is not UNSET
            else series.estimated_amount
        )
        validate_category_assignment(category_id, category_name, splits, amount)

        # Old split rows must be gone before new ones reuse their positions.
        if series.splits:
            series.splits.clear()
            self._session.flush()

        if splits:
            series.category_id = None
            series.splits = self._build_splits(series.household_id, splits)
        else:
            series.category_id = self._resolve_category(
                series.household_id, category_id, category_name
            )

    def _validate_series(self, series: RecurringBillSeries) -> None:
        """Re-check the stored template as a whole after a patch."""
        validate_recurrence(series.recurrence_type, series.custom_interval_days)
        if series.splits:
            total = sum((s.amount for s in series.splits), Decimal("0"))
            if total != series.estimated_amount:
                raise InvalidCategoryAssignmentError(
                    f"split amounts sum to {total}, expected {series.estimated_amount}"
                )
        elif series.category_id is None:
            raise InvalidCategoryAssignmentError(
                "a category or at least one split is required"
            )

    def _build_splits(
        self, household_id: UUID | None, splits: Sequence[SplitSpec]
    ) -> list[BillSplit]:
        return [
            BillSplit(
                position=position,
                subtitle=split.subtitle.strip(),
                category_id=self._resolve_category(
                    household_id, split.category_id, split.category_name
                ),
                amount=to_amount(split.amount, f"splits[{position}].amount"),
            )
            for position, split in enumerate(splits)
        ]

    def _resolve_category(
        self,
        household_id: UUID | None,
        category_id: UUID | None,
        category_name: str | None,
    ) -> UUID:
        if category_id is not None:
            return category_id
        if household_id is None:
            raise InvalidCategoryAssignmentError(
                "household_id is required to resolve a category name"
            )
        return self._categories.resolve_or_create(household_id, category_name)


def _column_value(value: Any) -> Any:
    if isinstance(value, RecurrenceType):
        return value.value
    return value


def _require_id(value: Any, field: str) -> UUID:
    if not isinstance(value, UUID):
        raise InvalidTemplateError(field, "must be a UUID")
    return value
