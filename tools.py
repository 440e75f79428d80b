import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


class MathTools:
    """Provides the arithmetic used by workout statistics."""

    @staticmethod
    def round_half_up(value: float, digits: int = 0) -> float:
        """Round ``value`` to ``digits`` decimals with halves rounded up (0.25 -> 0.3)."""
        quantum = Decimal(1).scaleb(-digits)
        return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))

    @staticmethod
    def set_volume(weight: Optional[float], reps: Optional[int]) -> float:
        """Return ``weight * reps`` or 0 when either value was not recorded."""
        if weight is None or reps is None:
            return 0
        return weight * reps

    @staticmethod
    def format_total_weight(total: float) -> str:
        """Render a lifted total, abbreviating thousands (``4830 -> "4.8k"``).

        Totals that round to 1000 use the abbreviated form (999.6 -> "1k").
        """
        whole = MathTools.round_half_up(total)
        if whole >= 1000:
            text = f"{MathTools.round_half_up(total / 1000, 1):.1f}"
            if text.endswith(".0"):
                text = text[:-2]
            return f"{text}k"
        return str(int(whole))


class DateTools:
    """Calendar helpers for filtering workouts by date."""

    PERIODS = ("all", "week", "month", "year")
    WEEK_STARTS = {"monday": 0, "sunday": 6}

    @staticmethod
    def ensure_aware(value: datetime.datetime) -> datetime.datetime:
        """Return ``value`` with UTC attached when it carries no offset."""
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value

    @staticmethod
    def parse_timestamp(ts: str) -> datetime.datetime:
        """Return ``ts`` as timezone-aware datetime."""
        return DateTools.ensure_aware(datetime.datetime.fromisoformat(ts))

    @classmethod
    def period_start(
        cls,
        period: str,
        now: datetime.datetime,
        week_start: str = "monday",
    ) -> Optional[datetime.datetime]:
        """Return the first instant of ``period`` containing ``now``.

        ``None`` means no lower bound; unknown periods behave like ``all``.
        """
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if period == "week":
            first = cls.WEEK_STARTS.get(week_start, 0)
            offset = (now.weekday() - first) % 7
            return midnight - datetime.timedelta(days=offset)
        if period == "month":
            return midnight.replace(day=1)
        if period == "year":
            return midnight.replace(month=1, day=1)
        return None

    @staticmethod
    def short_date(value: datetime.datetime) -> str:
        """Format ``value`` like ``Jan 5``."""
        return f"{value:%b} {value.day}"
