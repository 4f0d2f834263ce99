# listing_watch - change detection for classifieds search pages
# Contains: models, classifier, snapshot_store, batcher, notifier, scheduler, config

from .models import Listing, ChangeRecord, ChangeType, fingerprint, normalize_link
from .classifier import classify
from .snapshot_store import SnapshotStore, source_key
from .batcher import NotificationBatch, should_notify, render
from .config import load_config, MonitorConfig, SourceConfig
from .scheduler import CycleScheduler, CycleResult, RunContext, SchedulerState
from .errors import (
    ListingWatchError,
    FetchError,
    StoreReadError,
    StoreWriteError,
    DeliveryError,
    ConfigError,
)

__all__ = [
    'Listing',
    'ChangeRecord',
    'ChangeType',
    'fingerprint',
    'normalize_link',
    'classify',
    'SnapshotStore',
    'source_key',
    'NotificationBatch',
    'should_notify',
    'render',
    'load_config',
    'MonitorConfig',
    'SourceConfig',
    'CycleScheduler',
    'CycleResult',
    'RunContext',
    'SchedulerState',
    'ListingWatchError',
    'FetchError',
    'StoreReadError',
    'StoreWriteError',
    'DeliveryError',
    'ConfigError',
]
