"""
Current/archived classification by age since first seen.
"""

import datetime
from typing import NamedTuple

from gallerysync.models import Bucket

SECONDS_PER_DAY = 24 * 60 * 60


class Classification(NamedTuple):
    bucket: Bucket
    age_in_days: int


def age_in_days(first_seen_at: datetime.datetime, now: datetime.datetime) -> int:
    """
    Whole days elapsed, floored. A first-seen time in the future (clock skew
    between runs) counts as age 0.
    """
    seconds = (now - first_seen_at).total_seconds()
    return max(0, int(seconds // SECONDS_PER_DAY))


def classify(first_seen_at: datetime.datetime, now: datetime.datetime, threshold_days: int) -> Classification:
    """
    ARCHIVED once the age is strictly greater than threshold_days; an asset
    exactly threshold_days old is still CURRENT.
    """
    age = age_in_days(first_seen_at, now)
    bucket = Bucket.ARCHIVED if age > threshold_days else Bucket.CURRENT
    return Classification(bucket, age)
