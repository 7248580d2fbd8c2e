"""End-to-end flow through the HTTP control plane against the fake node.

init -> start -> status -> pin -> pins -> challenge -> unpin -> shutdown
"""

import pytest
from fastapi.testclient import TestClient

from spk_agent.api import create_app
from spk_agent.challenge import compute_proof
from spk_agent.runtime import AgentRuntime


class StubAutostart:
    def enable(self):
        pass

    def disable(self):
        pass

    def is_enabled(self):
        return False


@pytest.fixture
def runtime(make_supervisor, store, notifier):
    return AgentRuntime(
        supervisor=make_supervisor(),
        store=store,
        notifier=notifier,
        autostart=StubAutostart(),
        manage_node=True,
    )


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as test_client:
        yield test_client


@pytest.mark.integration
class TestNodeLifecycleOverHttp:
    """The lifespan brings the node up and down."""

    def test_startup_runs_daemon(self, client, runtime, repo_path):
        data = client.get("/api/status").json()

        assert data["running"] is True
        assert data["peer_id"] == "12D3KooWFakePeerIdForTests"
        assert data["ipfs_repo_size"] == 4096
        assert data["num_pinned_files"] == 0
        assert (repo_path / "config").exists()

    def test_shutdown_stops_daemon(self, runtime):
        with TestClient(create_app(runtime)) as client:
            assert client.get("/status").json()["running"] is True
            assert runtime.supervisor.pid is not None

        assert runtime.supervisor.pid is None
        assert runtime.supervisor.is_running() is False

    def test_stop_and_start_endpoints(self, client):
        stopped = client.post("/daemon/stop").json()
        assert stopped["running"] is False
        assert client.get("/status").json()["running"] is False

        started = client.post("/daemon/start").json()
        assert started["running"] is True
        assert client.get("/status").json()["running"] is True


@pytest.mark.integration
class TestPinFlowOverHttp:
    """Pins change status immediately, inside the cache TTL."""

    def test_pin_then_list_then_unpin(self, client):
        assert client.get("/status").json()["num_pinned_files"] == 0

        assert client.post("/pin", json={"cid": "bafyleafone"}).json() == {"success": True}
        assert client.post("/api/pin", json={"cid": "bafydagroot"}).json() == {"success": True}

        status = client.get("/status").json()
        assert status["num_pinned_files"] == 2
        assert status["ipfs_repo_size"] == 4096 + 2 * 1024

        pins = [p["cid"] for p in client.get("/pins").json()]
        assert pins == ["bafyleafone", "bafydagroot"]

        assert client.post("/unpin", json={"cid": "bafyleafone"}).json() == {"success": True}
        assert client.get("/status").json()["num_pinned_files"] == 1

    def test_pin_failure(self, client):
        response = client.post("/pin", json={"cid": "bafymissing"})

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "not found" in response.json()["error"]

    def test_storage_reports_quota(self, client):
        data = client.get("/storage").json()
        assert data["max_bytes"] == 10 * 1024 ** 3
        assert data["used_bytes"] == 4096


@pytest.mark.integration
class TestChallengeOverHttp:
    """Challenges hash real block bytes from the node."""

    def test_challenge_dag(self, client):
        response = client.post(
            "/challenge",
            json={"cid": "bafydagroot", "salt": "validator-salt", "block_indices": [2, 0]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["proof"] == compute_proof(
            "validator-salt", [b"block:bafydagroot-2", b"block:bafydagroot-0"]
        )

    def test_challenge_leaf(self, client):
        response = client.post("/challenge", json={"cid": "bafyleaf", "salt": "s", "block_indices": [0]})
        assert response.json()["proof"] == compute_proof("s", [b"block:bafyleaf"])

    def test_challenge_out_of_range(self, client):
        response = client.post("/challenge", json={"cid": "bafyleaf", "salt": "s", "block_indices": [0, 1]})

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_challenge_after_stop(self, client):
        client.post("/daemon/stop")

        response = client.post("/challenge", json={"cid": "bafyleaf", "salt": "s", "block_indices": [0]})

        assert response.status_code == 503
        assert response.json()["error"] == "IPFS daemon not running"


@pytest.mark.integration
class TestEarningsOverHttp:
    """Earnings persist across app instances."""

    def test_earnings_persist(self, client, runtime, notifier):
        client.post("/earnings/add", json={"amount_hbd": 0.6})
        client.post("/earnings/add", json={"amount_hbd": 0.6})

        assert client.get("/earnings").json()["challenge_count"] == 2
        assert [p["milestone"] for p in notifier.of("milestone")] == [1]
        assert runtime.store.load().total_earned_hbd == pytest.approx(1.2)
        assert client.get("/status").json()["total_earned"] == "1.200 HBD"
