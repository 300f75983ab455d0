"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name: str, documentation: str, labelnames=()):
    """Create a counter, reusing the registered collector if the module is re-imported"""
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Attendee activity
song_requests_counter = _counter(
    'heydj_song_requests_total',
    'Song request submissions by outcome',
    ['outcome']
)

votes_counter = _counter(
    'heydj_votes_total',
    'Vote toggles by direction',
    ['direction']
)

# Billing
webhook_events_counter = _counter(
    'heydj_webhook_events_total',
    'Stripe webhook events received',
    ['event_type', 'status']
)

expiry_sweep_runs_counter = _counter(
    'heydj_expiry_sweep_runs_total',
    'Expiry sweep runs by status',
    ['status']
)

subscriptions_downgraded_counter = _counter(
    'heydj_subscriptions_downgraded_total',
    'Subscriptions cleared by the expiry sweep'
)
