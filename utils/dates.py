import calendar
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Heure courante en UTC, sans fuseau (format renvoyé par pymongo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalise une date reçue du client en UTC naïf pour la comparer aux dates stockées."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    # Le jour est ramené au dernier jour du mois cible si nécessaire (31 janv. + 1 mois -> 28/29 févr.)
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
