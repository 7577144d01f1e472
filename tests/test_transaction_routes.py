from conftest import OTHER, WALLET

from app.core.limits import rate_limit_sync


def test_transaction_details_fetches_then_caches(client):
    tx = client.chain.add_transfer(42, WALLET, OTHER, 1_234_500_000_000_000_000, gas_used=21000)

    response = client.get(f"/transaction/{tx.hash}")

    assert response.status_code == 200
    body = response.json()
    assert body["hash"] == tx.hash
    assert body["fromAddress"] == WALLET
    assert body["toAddress"] == OTHER
    assert body["amount"] == "1.2345"
    assert body["blockNumber"] == "42"
    assert body["gasUsed"] == "21000"
    assert body["status"] == "success"
    assert body["walletId"] is not None

    client.chain.calls.clear()
    again = client.get(f"/transaction/{tx.hash}")
    assert again.status_code == 200
    assert again.json()["id"] == body["id"]
    assert client.chain.calls == []


def test_transaction_details_errors(client):
    bad = client.get("/transaction/0x1234")
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid transaction hash"

    missing = client.get("/transaction/0x" + "7" * 64)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Transaction not found"

    tx = client.chain.add_transfer(5, WALLET, OTHER, 10**18)
    client.chain.failing_receipts.add(tx.hash)
    failed = client.get(f"/transaction/{tx.hash}")
    assert failed.status_code == 500
    assert failed.json()["detail"] == "Failed to fetch transaction"


def test_sync_reports_counts_and_is_idempotent(client):
    client.chain.add_transfer(100, WALLET, OTHER, 10**18)
    client.chain.add_transfer(97, OTHER, WALLET, 10**18)

    first = client.post("/transactions/sync", json={"address": WALLET, "limit": 5})
    assert first.status_code == 200
    assert first.json() == {"synced": 2, "new": 2, "skipped": 0, "blocksScanned": 50}

    second = client.post("/transactions/sync", json={"address": WALLET, "limit": 5})
    assert second.json()["synced"] == 2
    assert second.json()["new"] == 0


def test_sync_default_limit_scans_to_genesis_on_short_chain(client):
    response = client.post("/transactions/sync", json={"address": WALLET})

    assert response.status_code == 200
    # Default limit 20 allows 200 blocks; the chain only has 101.
    assert response.json()["blocksScanned"] == 101
    assert response.json()["synced"] == 0


def test_sync_rejects_bad_input(client):
    missing = client.post("/transactions/sync", json={"limit": 5})
    assert missing.status_code == 400

    bad_address = client.post("/transactions/sync", json={"address": "0xzz"})
    assert bad_address.status_code == 400
    assert bad_address.json()["detail"] == "Invalid wallet address"

    for limit in (0, 101):
        response = client.post("/transactions/sync", json={"address": WALLET, "limit": limit})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid limit (1-100)"

    assert client.chain.calls == []


def test_sync_upstream_failure_is_500(client):
    async def broken():
        raise RuntimeError("node down")

    client.chain.get_block_number = broken

    response = client.post("/transactions/sync", json={"address": WALLET, "limit": 1})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to sync transactions"


def test_sync_is_rate_limited_per_client(client, monkeypatch):
    monkeypatch.setattr(rate_limit_sync, "limit", 2)

    statuses = [
        client.post("/transactions/sync", json={"address": WALLET, "limit": 1}).status_code
        for _ in range(3)
    ]

    assert statuses == [200, 200, 429]


def test_transaction_details_timestamps_carry_utc_zone(client):
    tx = client.chain.add_transfer(42, WALLET, OTHER, 10**18)

    body = client.get(f"/transaction/{tx.hash}").json()

    # Block 42 of the fake chain is mined at 1_700_000_504.
    assert body["timestamp"] == "2023-11-14T22:21:44Z"
    assert body["createdAt"].endswith("Z")
    assert body["updatedAt"].endswith("Z")


def test_transaction_details_keep_wide_integers_exact(client):
    tx = client.chain.add_transfer(
        42, WALLET, OTHER, 10**18, gas_used=2**53 + 1, gas_price=2**60 + 1
    )

    client.get(f"/transaction/{tx.hash}")
    # Second read comes from the store.
    body = client.get(f"/transaction/{tx.hash}").json()

    assert body["gasUsed"] == str(2**53 + 1)
    assert body["gasPrice"] == "1152921504606846977"
