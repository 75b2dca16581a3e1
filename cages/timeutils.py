from django.utils import timezone


def format_distance_to_now(value, now=None):
    """Vietnamese "time ago" label, e.g. ``5 phút trước``."""
    now = now or timezone.now()
    seconds = round((now - value).total_seconds())

    if seconds < 5:
        return 'vài giây trước'
    if seconds < 60:
        return f'{seconds} giây trước'

    minutes = round(seconds / 60)
    if minutes < 60:
        return f'{minutes} phút trước'

    hours = round(minutes / 60)
    if hours < 24:
        return f'{hours} giờ trước'

    days = round(hours / 24)
    return f'{days} ngày trước'
