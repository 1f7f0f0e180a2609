from datetime import date, timedelta

DAY = date(2024, 1, 10)
PREVIOUS_DAY = DAY - timedelta(days=1)
TWO_DAYS_AGO = DAY - timedelta(days=2)


def titles(records) -> list:
    return [r.title for r in records]


def indices(records) -> list:
    return [r.order_index for r in records]
