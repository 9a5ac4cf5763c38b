import logging
from datetime import date

from sqlalchemy.orm import Session

from slotkeeper.models.time_off import TimeOffPeriod
from slotkeeper.scheduling.errors import InvalidDateRange, RecordNotFound

logger = logging.getLogger(__name__)


class TimeOffRegistry:
    def __init__(self, db: Session):
        self.db = db

    def is_blocked(self, professional_id: int, day: date) -> bool:
        blocking = self.db.query(TimeOffPeriod.id).filter(
            TimeOffPeriod.professional_id == professional_id,
            TimeOffPeriod.start_date <= day,
            TimeOffPeriod.end_date >= day,
        ).first()
        return blocking is not None

    def periods_for(self, professional_id: int) -> list[TimeOffPeriod]:
        return (
            self.db.query(TimeOffPeriod)
            .filter(TimeOffPeriod.professional_id == professional_id)
            .order_by(TimeOffPeriod.start_date.desc())
            .all()
        )

    def add(
        self,
        professional_id: int,
        start_date: date,
        end_date: date,
        title: str,
        description: str | None = None,
        organization_id: int | None = None,
    ) -> TimeOffPeriod:
        if start_date > end_date:
            raise InvalidDateRange('Start date must be on or before end date.')

        period = TimeOffPeriod(
            organization_id=organization_id,
            professional_id=professional_id,
            start_date=start_date,
            end_date=end_date,
            title=title,
            description=description,
        )
        self.db.add(period)
        self.db.commit()
        self.db.refresh(period)
        logger.info('Added time off %s for professional %s: %s..%s', period.id, professional_id, start_date, end_date)
        return period

    def remove(self, period_id: int) -> None:
        period = self.db.get(TimeOffPeriod, period_id)
        if period is None:
            raise RecordNotFound('Time off period not found.')
        self.db.delete(period)
        self.db.commit()
