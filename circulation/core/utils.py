import datetime


def utcnow() -> datetime.datetime:
    """Current UTC time as a naive datetime, the form loans are stored in."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def to_utc(moment: datetime.datetime) -> datetime.datetime:
    """Normalizes an aware datetime to naive UTC; naive values are taken as UTC already."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return moment
