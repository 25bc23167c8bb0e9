"""
Risk Engine - Repository.

============================================================
PURPOSE
============================================================
Repository pattern implementation for risk history persistence.

Provides clean interface for:
- Saving and reading composite risk history
- Storing regression fits
- Recording and validating directional predictions
- Computing adaptive confidence from stored metrics

The repository flushes but never commits. Transaction
boundaries belong to the caller (database.transaction_scope).

============================================================
"""

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from database.engine import PersistenceValidationError

from .config import AssetRiskConfig
from .confidence import (
    AdaptiveConfidenceResult,
    PredictionSnapshot,
    compute_adaptive_confidence,
    is_directional,
    validate_prediction,
)
from .models import (
    PredictionSnapshotRecord,
    RegressionFitRecord,
    RiskPointFactorRecord,
    RiskPointRecord,
)
from .regression import RegressionModel
from .types import (
    Available,
    DateLike,
    MultiFactorRiskPoint,
    RiskFactor,
    RiskFactorType,
    RiskFactorWeights,
    Unavailable,
    date_key,
    to_utc_datetime,
)


logger = logging.getLogger(__name__)


class RiskHistoryRepository:
    """
    Repository for risk engine persistence operations.

    ============================================================
    METHODS
    ============================================================
    - save_risk_points: Upsert risk points by (asset, day)
    - get_risk_history: Time-sorted history query
    - get_latest_risk_point: Most recent point
    - save_regression_fit / get_latest_regression_fit
    - record_prediction: Directional snapshot, max one per day
    - validate_pending_predictions: Fill elapsed outcomes
    - compute_adaptive_confidence: Confidence from stored metrics

    ============================================================
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self._session = session

    # --------------------------------------------------------
    # RISK POINTS
    # --------------------------------------------------------

    def save_risk_points(
        self,
        asset_id: str,
        points: Iterable[MultiFactorRiskPoint],
        engine_version: str = "1.0.0",
    ) -> int:
        """
        Save risk points, replacing any existing row for the same day.

        Returns:
            Number of points written
        """
        asset_id = asset_id.upper()
        points = list(points)
        if not points:
            return 0

        days = [date_key(p.date) for p in points]
        if len(set(days)) != len(days):
            raise PersistenceValidationError(f"Duplicate days in risk points for {asset_id}")

        stmt = select(RiskPointRecord).where(
            RiskPointRecord.asset_id == asset_id,
            RiskPointRecord.point_date.in_(days),
        )
        existing = {r.point_date: r for r in self._session.execute(stmt).scalars()}

        for point, day in zip(points, days):
            record = existing.get(day)
            if record is None:
                record = RiskPointRecord(asset_id=asset_id, point_date=day)
                self._session.add(record)

            record.risk_level = point.risk_level
            record.category = point.category.value
            record.price = point.price
            record.fair_value = point.fair_value
            record.deviation = point.deviation
            record.weights_json = point.weights.to_dict()
            record.engine_version = engine_version
            record.factors = [
                RiskPointFactorRecord(
                    position=i,
                    factor_type=f.type.value,
                    is_available=f.is_available,
                    raw_value=f.raw_value,
                    normalized_value=f.normalized_value,
                    weight=f.weight,
                    unavailable_reason=f.unavailable_reason,
                )
                for i, f in enumerate(point.factors)
            ]

        self._session.flush()
        logger.info(
            f"Saved {len(points)} risk points for {asset_id} "
            f"({len(existing)} replaced)"
        )
        return len(points)

    def get_risk_history(
        self,
        asset_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[MultiFactorRiskPoint]:
        """
        Stored history for an asset, oldest first.

        Args:
            start: First day to include
            end: Last day to include
        """
        stmt = select(RiskPointRecord).where(RiskPointRecord.asset_id == asset_id.upper())
        if start is not None:
            stmt = stmt.where(RiskPointRecord.point_date >= start)
        if end is not None:
            stmt = stmt.where(RiskPointRecord.point_date <= end)
        stmt = stmt.order_by(RiskPointRecord.point_date)

        return [_to_risk_point(r) for r in self._session.execute(stmt).scalars()]

    def get_latest_risk_point(self, asset_id: str) -> Optional[MultiFactorRiskPoint]:
        stmt = (
            select(RiskPointRecord)
            .where(RiskPointRecord.asset_id == asset_id.upper())
            .order_by(desc(RiskPointRecord.point_date))
            .limit(1)
        )
        record = self._session.execute(stmt).scalar_one_or_none()
        return _to_risk_point(record) if record else None

    # --------------------------------------------------------
    # REGRESSION FITS
    # --------------------------------------------------------

    def save_regression_fit(
        self,
        model: RegressionModel,
        fitted_at: Optional[datetime] = None,
    ) -> RegressionFitRecord:
        """
        Raises:
            PersistenceValidationError: Model carries no asset id
        """
        if not model.asset_id:
            raise PersistenceValidationError("Regression model has no asset id")

        record = RegressionFitRecord(
            asset_id=model.asset_id.upper(),
            slope=model.slope,
            intercept=model.intercept,
            origin_date=model.origin_date,
            r_squared=model.r_squared,
            sample_count=model.sample_count,
            time_scale=model.time_scale,
        )
        if fitted_at is not None:
            record.fitted_at = to_utc_datetime(fitted_at)

        self._session.add(record)
        self._session.flush()
        return record

    def get_latest_regression_fit(self, asset_id: str) -> Optional[RegressionModel]:
        stmt = (
            select(RegressionFitRecord)
            .where(RegressionFitRecord.asset_id == asset_id.upper())
            .order_by(desc(RegressionFitRecord.fitted_at))
            .limit(1)
        )
        record = self._session.execute(stmt).scalar_one_or_none()
        if record is None:
            return None

        return RegressionModel(
            slope=record.slope,
            intercept=record.intercept,
            origin_date=record.origin_date,
            r_squared=record.r_squared,
            sample_count=record.sample_count,
            time_scale=record.time_scale,
            asset_id=record.asset_id,
        )

    # --------------------------------------------------------
    # PREDICTIONS
    # --------------------------------------------------------

    def record_prediction(
        self,
        asset_id: str,
        risk_level: float,
        price: float,
        at: DateLike,
    ) -> Optional[PredictionSnapshot]:
        """
        Store a directional reading as a prediction snapshot.

        Returns:
            The snapshot, or None if the reading is neutral or
            the asset already has a snapshot for that day
        """
        asset_id = asset_id.upper()
        if not is_directional(risk_level):
            return None

        day = date_key(at)
        stmt = select(PredictionSnapshotRecord.id).where(
            PredictionSnapshotRecord.asset_id == asset_id,
            PredictionSnapshotRecord.snapshot_day == day,
        )
        if self._session.execute(stmt).first() is not None:
            return None

        snapshot = PredictionSnapshot.create(asset_id, at, risk_level, price)
        self._session.add(PredictionSnapshotRecord(
            asset_id=asset_id,
            snapshot_date=snapshot.snapshot_date,
            snapshot_day=day,
            risk_level=snapshot.risk_level,
            risk_category=snapshot.risk_category,
            price_at_snapshot=snapshot.price_at_snapshot,
        ))
        self._session.flush()
        return snapshot

    def get_predictions(self, asset_id: str) -> List[PredictionSnapshot]:
        stmt = (
            select(PredictionSnapshotRecord)
            .where(PredictionSnapshotRecord.asset_id == asset_id.upper())
            .order_by(PredictionSnapshotRecord.snapshot_date)
        )
        return [_to_snapshot(r) for r in self._session.execute(stmt).scalars()]

    def validate_pending_predictions(
        self,
        asset_id: str,
        current_price: float,
        current_date: DateLike,
    ) -> int:
        """
        Fill elapsed 30/60/90 day outcomes.

        Returns:
            Number of snapshots updated
        """
        stmt = select(PredictionSnapshotRecord).where(
            PredictionSnapshotRecord.asset_id == asset_id.upper(),
            PredictionSnapshotRecord.is_correct_90_day.is_(None),
        )

        updated = 0
        for record in self._session.execute(stmt).scalars():
            before = _to_snapshot(record)
            after = validate_prediction(before, current_price, current_date)
            if after == before:
                continue

            for horizon in (30, 60, 90):
                setattr(record, f"price_at_{horizon}_days", getattr(after, f"price_at_{horizon}_days"))
                setattr(record, f"is_correct_{horizon}_day", getattr(after, f"is_correct_{horizon}_day"))
            record.validated_at = after.validated_at
            updated += 1

        if updated:
            self._session.flush()
            logger.info(f"Validated {updated} prediction snapshots for {asset_id.upper()}")
        return updated

    # --------------------------------------------------------
    # CONFIDENCE
    # --------------------------------------------------------

    def compute_adaptive_confidence(self, asset: AssetRiskConfig) -> AdaptiveConfidenceResult:
        """Adaptive confidence from the latest fit and 30-day outcomes."""
        fit = self.get_latest_regression_fit(asset.asset_id)

        stmt = (
            select(PredictionSnapshotRecord.is_correct_30_day)
            .where(
                PredictionSnapshotRecord.asset_id == asset.asset_id.upper(),
                PredictionSnapshotRecord.is_correct_30_day.is_not(None),
            )
            .order_by(PredictionSnapshotRecord.snapshot_date)
        )
        outcomes = [bool(v) for v in self._session.execute(stmt).scalars()]

        return compute_adaptive_confidence(
            asset,
            r_squared=fit.r_squared if fit else None,
            data_point_count=fit.sample_count if fit else 0,
            validated_outcomes=outcomes,
        )


# ============================================================
# RECORD -> DOMAIN
# ============================================================


def _to_risk_point(record: RiskPointRecord) -> MultiFactorRiskPoint:
    factors = []
    for f in record.factors:
        if f.is_available:
            value = Available(f.normalized_value, f.raw_value)
        else:
            value = Unavailable(f.unavailable_reason or "data unavailable")
        factors.append(RiskFactor(type=RiskFactorType(f.factor_type), value=value, weight=f.weight))

    return MultiFactorRiskPoint(
        date=record.point_date,
        risk_level=record.risk_level,
        price=record.price,
        fair_value=record.fair_value,
        deviation=record.deviation,
        factors=tuple(factors),
        weights=RiskFactorWeights(**record.weights_json),
    )


def _to_snapshot(record: PredictionSnapshotRecord) -> PredictionSnapshot:
    return PredictionSnapshot(
        asset_id=record.asset_id,
        snapshot_date=to_utc_datetime(record.snapshot_date),
        risk_level=record.risk_level,
        risk_category=record.risk_category,
        price_at_snapshot=record.price_at_snapshot,
        price_at_30_days=record.price_at_30_days,
        price_at_60_days=record.price_at_60_days,
        price_at_90_days=record.price_at_90_days,
        is_correct_30_day=record.is_correct_30_day,
        is_correct_60_day=record.is_correct_60_day,
        is_correct_90_day=record.is_correct_90_day,
        validated_at=to_utc_datetime(record.validated_at) if record.validated_at else None,
    )
