# Core module - shared components of the guide tracker
# Contains: models, guides, evaluator, storage, history, notifier, scheduler, config, base_scraper

from .base_scraper import BaseScraper
from .config import load_config, MonitorConfig
from .evaluator import evaluate, Evaluation
from .guides import build_batch, load_guides_from_file, load_guides_from_rows, SAMPLE_GUIDE_NUMBERS
from .history import HistoryAggregator
from .models import (
    CheckOutcome,
    DailySummary,
    ExtractedGuideData,
    Found,
    Guide,
    GuideError,
    NotFound,
    NotificationSettings,
    TransitionEvent,
    Unavailable,
)
from .notifier import EmailNotifier, NotificationDispatcher
from .scheduler import BatchResult, PollingScheduler
from .storage import GuideStore

__all__ = [
    'BaseScraper',
    'load_config',
    'MonitorConfig',
    'evaluate',
    'Evaluation',
    'build_batch',
    'load_guides_from_file',
    'load_guides_from_rows',
    'SAMPLE_GUIDE_NUMBERS',
    'HistoryAggregator',
    'CheckOutcome',
    'DailySummary',
    'ExtractedGuideData',
    'Found',
    'Guide',
    'GuideError',
    'NotFound',
    'NotificationSettings',
    'TransitionEvent',
    'Unavailable',
    'EmailNotifier',
    'NotificationDispatcher',
    'BatchResult',
    'PollingScheduler',
    'GuideStore',
]
