"""
Risk Engine - Persistence Models.

============================================================
PURPOSE
============================================================
ORM models for persisting computed risk history.

Enables:
- Serving risk history without refitting
- Tracking regression quality over time
- Validating past directional readings

============================================================
MODELS
============================================================
1. RiskPointRecord: One composite risk point per asset per day
2. RiskPointFactorRecord: Per-factor breakdown (child of RiskPointRecord)
3. RegressionFitRecord: Fitted regression coefficients and R²
4. PredictionSnapshotRecord: Directional reading with 30/60/90-day outcomes

============================================================
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database.engine import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# RISK POINT MODEL
# ============================================================


class RiskPointRecord(Base):
    """
    Composite risk reading for one asset on one day.

    ============================================================
    WHAT IT STORES
    ============================================================
    - Risk level and category
    - Price, fair value and log deviation
    - Weight vector used for aggregation
    - Engine version for compatibility tracking

    ============================================================
    RELATIONSHIPS
    ============================================================
    - Has many RiskPointFactorRecord (one per factor)

    ============================================================
    """

    __tablename__ = "risk_points"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    asset_id: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="Asset symbol: BTC, ETH, SOL",
    )

    point_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Calendar day (UTC) of the reading",
    )

    risk_level: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Composite risk level (0-1)",
    )

    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Very Low Risk .. Extreme Risk",
    )

    price: Mapped[float] = mapped_column(Float, nullable=False)

    fair_value: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Regression fair value, null when the regression factor was unavailable",
    )

    deviation: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="log10(price) - log10(fair_value)",
    )

    weights_json: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="Weight vector used for aggregation",
    )

    engine_version: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1.0.0",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    factors: Mapped[List["RiskPointFactorRecord"]] = relationship(
        "RiskPointFactorRecord",
        back_populates="risk_point",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RiskPointFactorRecord.position",
    )

    __table_args__ = (
        UniqueConstraint("asset_id", "point_date", name="uq_risk_points_asset_date"),
        Index("ix_risk_points_risk_level", "risk_level"),
    )

    def __repr__(self) -> str:
        return (
            f"RiskPointRecord("
            f"asset={self.asset_id}, "
            f"date={self.point_date}, "
            f"risk={self.risk_level:.3f})"
        )


# ============================================================
# RISK POINT FACTOR MODEL
# ============================================================


class RiskPointFactorRecord(Base):
    """
    One factor of a stored risk point.

    Unavailable factors are stored too, with their reason.
    """

    __tablename__ = "risk_point_factors"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    risk_point_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("risk_points.id", ondelete="CASCADE"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Evaluation order within the point",
    )

    factor_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="log_regression, rsi, sma_position, ...",
    )

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False)

    raw_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    normalized_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    weight: Mapped[float] = mapped_column(Float, nullable=False)

    unavailable_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    risk_point: Mapped["RiskPointRecord"] = relationship(
        "RiskPointRecord",
        back_populates="factors",
    )

    __table_args__ = (
        Index("ix_risk_point_factors_risk_point_id", "risk_point_id"),
    )

    def __repr__(self) -> str:
        return (
            f"RiskPointFactorRecord("
            f"type={self.factor_type}, "
            f"available={self.is_available})"
        )


# ============================================================
# REGRESSION FIT MODEL
# ============================================================


class RegressionFitRecord(Base):
    """Coefficients and fit quality of one regression run."""

    __tablename__ = "regression_fits"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    asset_id: Mapped[str] = mapped_column(String(10), nullable=False)

    slope: Mapped[float] = mapped_column(Float, nullable=False)

    intercept: Mapped[float] = mapped_column(Float, nullable=False)

    origin_date: Mapped[date] = mapped_column(Date, nullable=False)

    r_squared: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Coefficient of determination of the fit",
    )

    sample_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Price points used by the fit",
    )

    time_scale: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="linear or log",
    )

    fitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index("ix_regression_fits_asset_fitted_at", "asset_id", "fitted_at"),
    )

    def __repr__(self) -> str:
        return (
            f"RegressionFitRecord("
            f"asset={self.asset_id}, "
            f"r2={self.r_squared:.4f}, "
            f"n={self.sample_count})"
        )


# ============================================================
# PREDICTION SNAPSHOT MODEL
# ============================================================


class PredictionSnapshotRecord(Base):
    """
    Directional risk reading tracked for outcome validation.

    ============================================================
    LIFECYCLE
    ============================================================
    - Created for readings outside 0.45-0.55, one per asset per day
    - 30 / 60 / 90 day outcome columns filled as horizons elapse
    - validated_at set when the 90 day outcome is recorded

    ============================================================
    """

    __tablename__ = "prediction_snapshots"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    asset_id: Mapped[str] = mapped_column(String(10), nullable=False)

    snapshot_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    snapshot_day: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Calendar day (UTC) of snapshot_date",
    )

    risk_level: Mapped[float] = mapped_column(Float, nullable=False)

    risk_category: Mapped[str] = mapped_column(String(20), nullable=False)

    price_at_snapshot: Mapped[float] = mapped_column(Float, nullable=False)

    price_at_30_days: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_at_60_days: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_at_90_days: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    is_correct_30_day: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_correct_60_day: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_correct_90_day: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("asset_id", "snapshot_day", name="uq_prediction_snapshots_asset_day"),
        Index("ix_prediction_snapshots_pending", "asset_id", "is_correct_90_day"),
    )

    def __repr__(self) -> str:
        return (
            f"PredictionSnapshotRecord("
            f"asset={self.asset_id}, "
            f"day={self.snapshot_day}, "
            f"risk={self.risk_level:.3f})"
        )
