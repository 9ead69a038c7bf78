from mathstreak.core.balancing import PRODUCTION_BALANCING
from mathstreak.core.store import InMemoryStore, ProgressStore
from mathstreak.features.diamonds.service import SCHEMA_VERSION, DiamondService
from mathstreak.features.progress.service import ProgressService


def make_ledger(backend=None):
    store = ProgressStore(backend or InMemoryStore())
    progress = ProgressService(store)
    return DiamondService(store, PRODUCTION_BALANCING, progress), store


def test_crossing_threshold_awards_once():
    ledger, _ = make_ledger()
    assert ledger.update_from_progress(0).awarded == 0
    assert ledger.update_from_progress(79).awarded == 0
    update = ledger.update_from_progress(80)
    assert update.awarded == 1
    assert update.balance == 1
    assert update.total_earned == 1


def test_update_is_idempotent():
    ledger, _ = make_ledger()
    ledger.update_from_progress(240)
    again = ledger.update_from_progress(240)
    assert again.awarded == 0
    assert again.balance == 3


def test_total_earned_survives_spending():
    ledger, _ = make_ledger()
    ledger.update_from_progress(160)
    assert ledger.spend(2).success
    update = ledger.update_from_progress(160)
    assert update.awarded == 0
    assert update.balance == 0
    assert update.total_earned == 2
    assert ledger.total_earned() == 2


def test_spend_rejects_bad_amounts_and_overdraft():
    ledger, _ = make_ledger()
    ledger.add(1)
    assert ledger.spend(0).reason == "invalid_amount"
    assert ledger.spend(-3).reason == "invalid_amount"
    overdraft = ledger.spend(2)
    assert overdraft.success is False
    assert overdraft.reason == "insufficient_funds"
    assert ledger.balance() == 1
    ok = ledger.spend(1)
    assert ok.success and ok["balance"] == 0


def test_add_rejects_non_positive():
    ledger, _ = make_ledger()
    assert ledger.add(0).reason == "invalid_amount"
    assert ledger.add(3)["balance"] == 3
    assert ledger.total_earned() == 0


def test_migration_backfills_legacy_store_without_credit():
    backend = InMemoryStore()
    backend.set("mathstreak_progress", {"total_tasks_completed": 200, "total_challenges_completed": 25})
    backend.set("mathstreak_diamonds", 1)

    ledger, store = make_ledger(backend)

    assert ledger.total_earned() == 2
    assert store.load_int(store.key(ProgressStore.SCHEMA_VERSION)) == SCHEMA_VERSION
    update = ledger.update_from_progress()
    assert update.awarded == 0
    assert update.balance == 1


def test_migration_on_fresh_store_starts_at_zero():
    ledger, store = make_ledger()
    assert ledger.total_earned() == 0
    assert store.exists(store.key(ProgressStore.DIAMONDS_EARNED))
    assert ledger.migrate() is False


def test_info_reports_progress_to_next():
    ledger, store = make_ledger()
    ledger.progress.record_challenge_completion(8)
    ledger.progress.record_challenge_completion(8)
    ledger.add(2)
    ledger.spend(1)
    info = ledger.info()
    assert info["current"] == 1
    assert info["spent"] == 1
    assert info["tasks_until_next"] == 64
    assert info["progress_to_next"] == 20
