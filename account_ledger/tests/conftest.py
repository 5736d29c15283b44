import logging
import time

import pytest
from decimal import Decimal

from account_ledger.config import Settings
from account_ledger.service import WithdrawalService
from account_ledger.store import LedgerStore


DEMO_ACCOUNT = "demo-001"
COMPLETION_DELAY = 0.05


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def service_log():
    target = logging.getLogger("account_ledger.service")
    handler = RecordingHandler()
    previous_level = target.level
    target.addHandler(handler)
    target.setLevel(logging.INFO)
    yield handler
    target.removeHandler(handler)
    target.setLevel(previous_level)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        completion_delay_seconds=COMPLETION_DELAY,
        seed_balances={DEMO_ACCOUNT: Decimal("10000")},
        log_format="text",
    )


@pytest.fixture
def store() -> LedgerStore:
    store = LedgerStore()
    store.set_balance(DEMO_ACCOUNT, Decimal("10000"))
    return store


@pytest.fixture
def service(store, settings):
    service = WithdrawalService(store=store, settings=settings)
    yield service
    service.shutdown()
