"""Domain layer: pure Python, no framework dependencies."""

from hrflow.domain.models import ActionContext, ActionResult, Actor, Command, FuzzyMatch, MatchType
from hrflow.domain.similarity import levenshtein, similarity
from hrflow.domain.resolver import EntityResolver, Outcome, Resolution
from hrflow.domain.dates import DateRange, parse_date_range, parse_natural_date
from hrflow.domain.confirmation import ConfirmationBroker, PendingConfirmationStore
from hrflow.domain.events import DomainEvent, EventOutbox, NotificationRelay
from hrflow.domain.dispatcher import Dispatcher, Route, build_routes
from hrflow.domain.sweep import SweepGuard, TerminationReminderSweep

__all__ = [
    "ActionContext",
    "ActionResult",
    "Actor",
    "Command",
    "FuzzyMatch",
    "MatchType",
    "levenshtein",
    "similarity",
    "EntityResolver",
    "Outcome",
    "Resolution",
    "DateRange",
    "parse_date_range",
    "parse_natural_date",
    "ConfirmationBroker",
    "PendingConfirmationStore",
    "DomainEvent",
    "EventOutbox",
    "NotificationRelay",
    "Dispatcher",
    "Route",
    "build_routes",
    "SweepGuard",
    "TerminationReminderSweep",
]
