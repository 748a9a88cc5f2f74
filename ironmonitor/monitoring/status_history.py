"""
Run/stop transition recorder
Opens and closes DeviceStatusHistory periods as devices change state
"""

import structlog
from datetime import datetime
from typing import Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ironmonitor.models.status_history import DeviceStatusHistory
from ironmonitor.schemas.device import NO_DOWNTIME, DeviceRecord

logger = structlog.get_logger(__name__)


def status_name(device: DeviceRecord) -> str:
    return "running" if device.status else "stopped"


class StatusHistoryRecorder:
    """Tracks per-device status periods in the database"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._known: Dict[str, str] = {}

    def record(self, devices: Iterable[DeviceRecord], timestamp: datetime) -> int:
        """Record status changes observed this tick, returning the number of transitions"""
        changed = [device for device in devices if self._known.get(device.id) != status_name(device)]
        if not changed:
            return 0

        db_session = self.session_factory()
        try:
            for device in changed:
                self._update_device_status(db_session, device, timestamp)
            db_session.commit()
        except SQLAlchemyError as e:
            logger.error("Error recording status history", error=str(e))
            db_session.rollback()
            return 0
        finally:
            db_session.close()

        for device in changed:
            self._known[device.id] = status_name(device)
        return len(changed)

    def _update_device_status(self, db_session, device: DeviceRecord, timestamp: datetime):
        """Close the open period for a device and start a new one"""
        new_status = status_name(device)

        current_status = db_session.query(DeviceStatusHistory).filter(
            DeviceStatusHistory.device_id == device.id,
            DeviceStatusHistory.ended_at.is_(None)
        ).first()

        if current_status:
            if current_status.status == new_status:
                return
            current_status.ended_at = timestamp
            current_status.duration_seconds = (
                _as_aware(current_status.ended_at, timestamp) - _as_aware(current_status.started_at, timestamp)
            ).total_seconds()

        cause = None if device.status or device.downtime_cause == NO_DOWNTIME else device.downtime_cause
        db_session.add(DeviceStatusHistory(
            device_id=device.id,
            status=new_status,
            cause=cause,
            started_at=timestamp
        ))

        logger.info("Device status changed",
                    device_id=device.id,
                    old_status=current_status.status if current_status else None,
                    new_status=new_status)

    def forget(self, device_id) -> None:
        self._known.pop(str(device_id), None)

    def periods(self, device_id, limit: int = 100) -> List[DeviceStatusHistory]:
        """Most recent periods for a device, newest first"""
        db_session = self.session_factory()
        try:
            return db_session.query(DeviceStatusHistory).filter(
                DeviceStatusHistory.device_id == str(device_id)
            ).order_by(DeviceStatusHistory.started_at.desc(), DeviceStatusHistory.id.desc()).limit(limit).all()
        finally:
            db_session.close()


def _as_aware(value: datetime, reference: datetime) -> datetime:
    """SQLite drops tzinfo on round trip; borrow it from the reference timestamp"""
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=reference.tzinfo)
    return value
