"""Per-bucket storage quota ledger.

Sizes are tracked in whole megabytes, rounded up: a 1-byte file costs 1 MB.
The check is advisory and the increment is a separate statement, so two
concurrent uploads can both pass the check; ``try_commit`` closes that window
with a single increment-with-ceiling UPDATE.
"""

import math

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from stream_assets.db.models import BucketModel
from stream_assets.domain.errors import QuotaExceededError
from stream_assets.logging import get_logger

logger = get_logger(__name__)

MIB = 1024 * 1024


def required_mb(size_bytes: int) -> int:
    """Megabytes charged for a file of ``size_bytes``."""
    if size_bytes <= 0:
        return 0
    return math.ceil(size_bytes / MIB)


class QuotaLedger:
    """Applies reservations, commits and releases to bucket counters."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @staticmethod
    def available_mb(bucket: BucketModel) -> int:
        return max(bucket.allotted_mb - bucket.used_mb, 0)

    def reserve(self, bucket: BucketModel, delta_mb: int) -> bool:
        """Advisory check: does ``delta_mb`` fit right now?"""
        return delta_mb <= self.available_mb(bucket)

    def ensure_capacity(self, bucket: BucketModel, delta_mb: int) -> None:
        """Raise QuotaExceededError when ``delta_mb`` does not fit."""
        if self.reserve(bucket, delta_mb):
            return
        available = self.available_mb(bucket)
        logger.info(
            "quota_insufficient",
            bucket_id=bucket.id,
            required_mb=delta_mb,
            available_mb=available,
        )
        raise QuotaExceededError(
            required_mb=delta_mb,
            available_mb=available,
            total_mb=bucket.allotted_mb,
            used_mb=bucket.used_mb,
        )

    def commit(self, bucket: BucketModel, delta_mb: int) -> None:
        """Charge ``delta_mb`` to the bucket."""
        if delta_mb <= 0:
            return
        self.session.execute(
            update(BucketModel)
            .where(BucketModel.id == bucket.id)
            .values(used_mb=BucketModel.used_mb + delta_mb),
            execution_options={"synchronize_session": False},
        )
        self.session.flush()
        self.session.refresh(bucket)
        logger.info(
            "quota_committed", bucket_id=bucket.id, delta_mb=delta_mb, used_mb=bucket.used_mb
        )

    def try_commit(self, bucket: BucketModel, delta_mb: int) -> bool:
        """Atomically charge ``delta_mb`` only if it keeps ``used <= allotted``."""
        if delta_mb <= 0:
            return True
        result = self.session.execute(
            update(BucketModel)
            .where(
                BucketModel.id == bucket.id,
                BucketModel.used_mb + delta_mb <= BucketModel.allotted_mb,
            )
            .values(used_mb=BucketModel.used_mb + delta_mb),
            execution_options={"synchronize_session": False},
        )
        self.session.flush()
        self.session.refresh(bucket)
        return result.rowcount == 1

    def release(self, bucket: BucketModel, delta_mb: int) -> None:
        """Give back ``delta_mb``, never going below zero."""
        if delta_mb <= 0:
            return
        self.session.execute(
            update(BucketModel)
            .where(BucketModel.id == bucket.id)
            .values(
                used_mb=case(
                    (BucketModel.used_mb > delta_mb, BucketModel.used_mb - delta_mb),
                    else_=0,
                )
            ),
            execution_options={"synchronize_session": False},
        )
        self.session.flush()
        self.session.refresh(bucket)
        logger.info(
            "quota_released", bucket_id=bucket.id, delta_mb=delta_mb, used_mb=bucket.used_mb
        )
