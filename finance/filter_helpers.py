"""
Helper functions for filtering list views
"""
from datetime import datetime, time
from decimal import Decimal, InvalidOperation

from django.db.models import DateTimeField, Q
from django.utils import timezone
from dateutil.relativedelta import relativedelta

from finance.exceptions import InvalidRequest

PERIOD_PRESETS = ('this_month', 'last_month', 'this_year')


def parse_date(value):
    """
    Parse ``YYYY-MM-DD`` (or a full ISO datetime, keeping the date part).
    Returns a date or None when the value is empty.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return datetime.strptime(value.split('T', 1)[0], '%Y-%m-%d').date()
    except ValueError:
        raise InvalidRequest(f"Invalid date '{value}'. Expected YYYY-MM-DD.")


def parse_date_range(date_range_string):
    """
    Parse date range string in format "YYYY-MM-DD to YYYY-MM-DD"
    Returns tuple (start_date, end_date) or None if invalid
    """
    if not date_range_string:
        return None

    try:
        parts = date_range_string.split(' to ')
        if len(parts) == 2:
            start_date = datetime.strptime(parts[0].strip(), '%Y-%m-%d').date()
            end_date = datetime.strptime(parts[1].strip(), '%Y-%m-%d').date()
            return start_date, end_date
        elif len(parts) == 1:
            # Single date, use as both start and end
            single_date = datetime.strptime(parts[0].strip(), '%Y-%m-%d').date()
            return single_date, single_date
    except (ValueError, AttributeError):
        return None

    return None


def period_bounds(period, today=None):
    """Resolve a named period preset to (start_date, end_date)"""
    today = today or timezone.localdate()
    first_of_month = today.replace(day=1)
    if period == 'this_month':
        return first_of_month, first_of_month + relativedelta(months=1, days=-1)
    if period == 'last_month':
        start = first_of_month - relativedelta(months=1)
        return start, first_of_month - relativedelta(days=1)
    if period == 'this_year':
        return today.replace(month=1, day=1), today.replace(month=12, day=31)
    raise InvalidRequest(f"Unknown period '{period}'. Use one of: {', '.join(PERIOD_PRESETS)}.")


def date_bounds_from_request(request):
    """
    Read ``startDate``/``endDate`` (or ``period``, or the legacy ``date_range``)
    from the query string. Returns (start_date, end_date); either may be None.
    """
    params = request.query_params
    period = params.get('period', '').strip()
    if period:
        return period_bounds(period)

    start_date = parse_date(params.get('startDate', ''))
    end_date = parse_date(params.get('endDate', ''))
    if not start_date and not end_date:
        date_range = parse_date_range(params.get('date_range', '').strip())
        if date_range:
            start_date, end_date = date_range
    if start_date and end_date and end_date < start_date:
        raise InvalidRequest('endDate cannot be before startDate.')
    return start_date, end_date


def apply_text_search(queryset, search_term, search_fields):
    """
    Apply text search across multiple fields using Q objects
    """
    if not search_term:
        return queryset

    search_term = search_term.strip()
    if not search_term:
        return queryset

    q_objects = Q()
    for field in search_fields:
        q_objects |= Q(**{f"{field}__icontains": search_term})

    return queryset.filter(q_objects)


def apply_date_filter(queryset, date_field, start_date=None, end_date=None):
    """
    Apply date range filter to queryset

    DateTimeFields are bounded by the start of ``start_date`` and the end of
    ``end_date``; DateFields compare the dates directly.
    """
    if not start_date and not end_date:
        return queryset

    field = queryset.model._meta.get_field(date_field)
    is_datetime_field = isinstance(field, DateTimeField)

    if start_date:
        if is_datetime_field:
            start_date = timezone.make_aware(datetime.combine(start_date, time.min))
        queryset = queryset.filter(**{f"{date_field}__gte": start_date})

    if end_date:
        if is_datetime_field:
            end_date = timezone.make_aware(datetime.combine(end_date, time.max))
        queryset = queryset.filter(**{f"{date_field}__lte": end_date})

    return queryset


def apply_amount_range_filter(queryset, amount_field, from_amount=None, to_amount=None):
    """
    Apply amount range filter to queryset
    """
    if from_amount:
        try:
            queryset = queryset.filter(**{f"{amount_field}__gte": Decimal(str(from_amount))})
        except InvalidOperation:
            pass
    if to_amount:
        try:
            queryset = queryset.filter(**{f"{amount_field}__lte": Decimal(str(to_amount))})
        except InvalidOperation:
            pass
    return queryset


def apply_list_filters(queryset, request, search_fields=(), date_field=None, amount_field='amount', status_field='status'):
    """Apply the common ``search``/``status``/date/amount query filters to a list queryset"""
    params = request.query_params

    search = params.get('search', '').strip()
    if search and search_fields:
        queryset = apply_text_search(queryset, search, search_fields)

    status_filter = params.get('status', '').strip().lower()
    if status_field and status_filter:
        queryset = queryset.filter(**{status_field: status_filter})

    if date_field:
        start_date, end_date = date_bounds_from_request(request)
        queryset = apply_date_filter(queryset, date_field, start_date, end_date)

    min_amount = params.get('min_amount', '').strip()
    max_amount = params.get('max_amount', '').strip()
    if amount_field and (min_amount or max_amount):
        queryset = apply_amount_range_filter(queryset, amount_field, min_amount, max_amount)

    return queryset
