"""Wires the services together from one Settings value."""
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .config import Settings
from .database import Database
from .services.acknowledgment import AcknowledgmentHandler
from .services.compliance import LogCompletionOracle
from .services.dispatcher import ReminderDispatcher
from .services.escalation import EscalationEngine
from .services.push_sender import PushChannel
from .services.routine import RoutinePushService
from .services.scheduler import SchedulerService
from .services.subscription_store import SubscriptionStore
from .services.triggers import TriggerService
from .services.whatsapp_sender import WhatsAppChannel
from .utils.locks import PatientLocks


@dataclass
class Runtime:
    settings: Settings
    database: Database
    store: SubscriptionStore
    push: PushChannel
    whatsapp: WhatsAppChannel
    dispatcher: ReminderDispatcher
    oracle: LogCompletionOracle
    locks: PatientLocks
    routine: RoutinePushService
    escalation: EscalationEngine
    acknowledgments: AcknowledgmentHandler
    triggers: TriggerService
    scheduler: SchedulerService


def build_runtime(
    settings: Settings,
    push_sender: Optional[Callable] = None,
    whatsapp_transport: Optional[httpx.AsyncBaseTransport] = None,
    oracle: Optional[LogCompletionOracle] = None,
) -> Runtime:
    """Build every service once; ``push_sender`` and ``whatsapp_transport`` replace the network."""
    database = Database(settings)
    store = SubscriptionStore()
    push = PushChannel(settings, sender=push_sender)
    whatsapp = WhatsAppChannel(settings, transport=whatsapp_transport)
    dispatcher = ReminderDispatcher(store, push, whatsapp)
    oracle = oracle or LogCompletionOracle()
    locks = PatientLocks()
    routine = RoutinePushService(settings, database, dispatcher)
    escalation = EscalationEngine(settings, database, dispatcher, oracle, locks)
    acknowledgments = AcknowledgmentHandler(settings, database, oracle, locks)
    triggers = TriggerService(settings, routine, escalation)
    scheduler = SchedulerService(settings, database, triggers)
    return Runtime(
        settings=settings,
        database=database,
        store=store,
        push=push,
        whatsapp=whatsapp,
        dispatcher=dispatcher,
        oracle=oracle,
        locks=locks,
        routine=routine,
        escalation=escalation,
        acknowledgments=acknowledgments,
        triggers=triggers,
        scheduler=scheduler,
    )
