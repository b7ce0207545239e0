import pytest

from bootplan.cloudinit.worker_join import new_join_worker
from bootplan.config.models import JoinWorkerIntent
from bootplan.errors import InvalidToken, UnsupportedConfinement

TOKEN = "c" * 32


def _intent(**overrides):
    base = dict(
        token=TOKEN,
        endpoint="10.0.0.100",
        kubernetes_version="v1.27.1",
        join_node_ips=["10.0.0.1"],
    )
    base.update(overrides)
    return JoinWorkerIntent(**base)


def test_worker_commands_exact():
    plan = new_join_worker(_intent())
    assert plan.run_commands == [
        "set -x",
        '/capi-scripts/00-configure-snapstore-http-proxy.sh "" ""',
        '/capi-scripts/00-configure-snapstore-proxy.sh "http" "" ""',
        "/capi-scripts/00-disable-host-services.sh",
        '/capi-scripts/00-install-microk8s.sh "--channel 1.27 --classic"',
        '/capi-scripts/10-configure-containerd-proxy.sh "" "" ""',
        "/capi-scripts/10-configure-kubelet.sh",
        "microk8s status --wait-ready",
        '/capi-scripts/10-configure-cluster-agent-port.sh "25000"',
        f'/capi-scripts/20-microk8s-join.sh "10.0.0.1:25000/{TOKEN}" --worker',
        '/capi-scripts/30-configure-traefik.sh "10.0.0.100"',
    ]


def test_worker_has_no_secret_files_and_no_add_node():
    plan = new_join_worker(_intent())
    assert all(f.path.startswith("/capi-scripts/") for f in plan.write_files)
    assert plan.invocations("add-node") == []
    assert plan.invocations("configure-dqlite-port") == []


def test_worker_fallback_urls_keep_order():
    plan = new_join_worker(_intent(join_node_ips=["10.0.0.3", "10.0.0.1", "10.0.0.2"]))
    [join] = plan.invocations("join")
    assert [a.value for a in join.args] == [
        f"10.0.0.3:25000/{TOKEN}",
        f"10.0.0.1:25000/{TOKEN}",
        f"10.0.0.2:25000/{TOKEN}",
        "--worker",
    ]


def test_worker_validation():
    with pytest.raises(InvalidToken):
        new_join_worker(_intent(token="c" * 31))
    with pytest.raises(UnsupportedConfinement):
        new_join_worker(_intent(confinement="strict", kubernetes_version="v1.20.0"))
    new_join_worker(_intent(confinement="strict", kubernetes_version="v1.25.0"))
