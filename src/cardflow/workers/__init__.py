"""Ready-made worker compositions built from the standard phases."""

from cardflow.workers.etl import build_etl_worker, card_event, event_notifier
from cardflow.workers.translator import TranslateInputs, build_translator_worker, translate_task

__all__ = [
    "TranslateInputs",
    "build_etl_worker",
    "build_translator_worker",
    "card_event",
    "event_notifier",
    "translate_task",
]
