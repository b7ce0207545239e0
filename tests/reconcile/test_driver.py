import pytest
import yaml

from bootplan.config.models import ClusterRef, InitControlPlaneIntent, JoinControlPlaneIntent, JoinWorkerIntent
from bootplan.config.settings import load_settings
from bootplan.errors import ClaimStoreUnavailable, InvalidToken, MissingScriptError, PlanValidationError
from bootplan.locking.claim import ClusterInitClaim
from bootplan.locking.mutex import ControlPlaneInitMutex
from bootplan.locking.store import FileClaimStore, InMemoryClaimStore
from bootplan.observers.dispatcher import EventBus
from bootplan.observers.events import BootstrapDataStored, ReconcileRequeued
from bootplan.reconcile.driver import BootstrapReconciler, InMemoryDataSink, ReconcileRequest, reconciler_from_settings

TOKEN = "d" * 32
CLUSTER = ClusterRef(name="demo", namespace="capi")


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


class FlakyStore(InMemoryClaimStore):
    def get(self, key):
        raise ClaimStoreUnavailable("apiserver unreachable")


def _init(**kw):
    return InitControlPlaneIntent(token=kw.pop("token", TOKEN), kubernetes_version="v1.25.2", **kw)


def _join_cp():
    return JoinControlPlaneIntent(token=TOKEN, kubernetes_version="v1.25.2", join_node_ips=["10.0.0.1"])


def _cp(machine, initialized=False, **kw):
    return ReconcileRequest(
        cluster=CLUSTER,
        machine=machine,
        control_plane=True,
        cluster_initialized=initialized,
        init_intent=kw.get("init_intent", _init()),
        join_intent=_join_cp(),
    )


def _setup(machine_exists=None, store=None):
    cap = Capture()
    bus = EventBus([cap])
    mutex = ControlPlaneInitMutex(store or InMemoryClaimStore(), bus=bus)
    sink = InMemoryDataSink()
    r = BootstrapReconciler(mutex, sink, bus=bus, machine_exists=machine_exists)
    return r, mutex, sink, cap


def test_first_control_plane_machine_initializes():
    r, mutex, sink, cap = _setup()
    res = r.reconcile(_cp("cp-0"))
    assert res.requeue_after == 0
    assert res.data_secret_name == "cp-0"
    assert mutex.holder("capi/demo") == "cp-0"
    assert sink.records["cp-0"]["format"] == "cloud-config"
    doc = yaml.safe_load(sink.get("cp-0"))
    assert doc["runcmd"][-1].startswith("microk8s add-node")
    assert any(isinstance(e, BootstrapDataStored) for e in cap.events)


def test_second_control_plane_machine_waits():
    r, mutex, sink, cap = _setup()
    r.reconcile(_cp("cp-0"))
    res = r.reconcile(_cp("cp-1"))
    assert res.requeue_after == 30
    assert res.data_secret_name is None
    assert sink.get("cp-1") is None
    [ev] = [e for e in cap.events if isinstance(e, ReconcileRequeued)]
    assert ev.machine == "cp-1" and ev.after_s == 30


def test_repeat_reconcile_of_holder_is_safe():
    r, mutex, sink, _ = _setup()
    first = r.reconcile(_cp("cp-0"))
    data = sink.get("cp-0")
    second = r.reconcile(_cp("cp-0"))
    assert first == second
    assert sink.get("cp-0") == data


def test_worker_waits_for_initialized_cluster():
    r, _, sink, _ = _setup()
    req = ReconcileRequest(
        cluster=CLUSTER,
        machine="w-0",
        control_plane=False,
        join_intent=JoinWorkerIntent(token=TOKEN, kubernetes_version="v1.25.2"),
    )
    assert r.reconcile(req).requeue_after == 30

    ready = ReconcileRequest(
        cluster=CLUSTER,
        machine="w-0",
        control_plane=False,
        cluster_initialized=True,
        join_intent=JoinWorkerIntent(token=TOKEN, kubernetes_version="v1.25.2"),
    )
    assert r.reconcile(ready).data_secret_name == "w-0"
    assert "--worker" in sink.get("w-0").decode()


def test_initialized_cluster_releases_lock_and_joins():
    r, mutex, sink, _ = _setup()
    r.reconcile(_cp("cp-0"))
    res = r.reconcile(_cp("cp-1", initialized=True))
    assert res.data_secret_name == "cp-1"
    assert mutex.holder("capi/demo") is None
    assert "20-microk8s-join.sh no" in sink.get("cp-1").decode()


def test_failed_init_releases_lock():
    r, mutex, sink, _ = _setup()
    with pytest.raises(InvalidToken):
        r.reconcile(_cp("cp-0", init_intent=_init(token="short")))
    assert mutex.holder("capi/demo") is None
    assert sink.get("cp-0") is None
    # another machine can now try
    assert r.reconcile(_cp("cp-1")).data_secret_name == "cp-1"


def test_missing_intent_is_a_validation_error():
    r, mutex, _, _ = _setup()
    req = ReconcileRequest(cluster=CLUSTER, machine="cp-0", control_plane=True)
    with pytest.raises(PlanValidationError):
        r.reconcile(req)
    assert mutex.holder("capi/demo") is None


def test_vanished_holder_is_revoked():
    alive = {"cp-0"}
    r, mutex, _, _ = _setup(machine_exists=lambda m: m in alive)
    r.reconcile(_cp("cp-0"))
    assert r.reconcile(_cp("cp-1")).requeue_after == 30

    alive.discard("cp-0")
    assert r.reconcile(_cp("cp-1")).data_secret_name == "cp-1"
    assert mutex.holder("capi/demo") == "cp-1"


def test_store_outage_propagates_for_retry():
    r, _, _, _ = _setup(store=FlakyStore())
    with pytest.raises(ClaimStoreUnavailable):
        r.reconcile(_cp("cp-0"))


def test_stale_holder_revoke_spares_a_new_holder():
    seen = []

    def machine_exists(holder):
        if not seen:
            seen.append(holder)
            # cp-0 lets go and cp-2 takes the lock before cp-1 acts on "gone"
            mutex.unlock("capi/demo")
            r.reconcile(_cp("cp-2"))
        return False

    r, mutex, sink, _ = _setup(machine_exists=machine_exists)
    r.reconcile(_cp("cp-0"))

    res = r.reconcile(_cp("cp-1"))
    assert seen == ["cp-0"]
    assert res.requeue_after == 30
    assert mutex.holder("capi/demo") == "cp-2"
    assert sink.get("cp-2") is not None
    assert sink.get("cp-1") is None


def test_claim_without_holder_is_not_revoked():
    store = InMemoryClaimStore()
    store.create_if_absent("capi/demo", ClusterInitClaim(cluster_key="capi/demo", holder_machine_key="", acquired_at=""))
    r, mutex, sink, _ = _setup(machine_exists=lambda m: False, store=store)
    assert r.reconcile(_cp("cp-1")).requeue_after == 30
    assert mutex.holder("capi/demo") == ""
    assert sink.get("cp-1") is None


def test_reconciler_from_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("BOOTPLAN_LOCK_BACKEND", "file")
    monkeypatch.setenv("BOOTPLAN_LOCK_DIR", str(tmp_path))
    monkeypatch.setenv("BOOTPLAN_REQUEUE_SECONDS", "5")
    r = reconciler_from_settings(load_settings(), InMemoryDataSink())
    assert isinstance(r.mutex.store, FileClaimStore)
    assert r.reconcile(_cp("cp-0")).data_secret_name == "cp-0"
    assert r.reconcile(_cp("cp-1")).requeue_after == 5
    assert (tmp_path / "capi__demo.lock").exists()


def test_broken_install_fails_before_any_lock(tmp_path):
    mutex = ControlPlaneInitMutex(InMemoryClaimStore())
    with pytest.raises(MissingScriptError):
        BootstrapReconciler(mutex, InMemoryDataSink(), scripts_dir=tmp_path)
    assert mutex.holder("capi/demo") is None
