import pytest
from fastapi.testclient import TestClient

from web3funnel.server import MemoryStore, create_app

WALLET = "0x52908400098527886E0F7030069857D2E4169EE7"


def make_event(event_type, user_id="u1", session_id="s1", **fields):
    return {"eventType": event_type, "userId": user_id, "sessionId": session_id, **fields}


@pytest.mark.unit
class TestRegisterWebsite:
    def test_register(self, client, store):
        response = client.post(
            "/api/v1/websites/register",
            json={
                "name": "  Swap dApp ",
                "domain": "swapdapp.xyz",
                "description": "Token swaps",
                "owner": {"name": "Ops", "email": "ops@swapdapp.xyz", "walletAddress": WALLET},
                "settings": {"trackingEnabled": True, "trackEvents": {"clicks": False}},
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Website registered successfully"
        data = body["data"]
        assert set(data) == {"websiteId", "name", "domain", "apiKey", "status"}
        assert data["name"] == "Swap dApp"
        assert data["status"] == "active"
        assert len(data["apiKey"]) == 64
        int(data["apiKey"], 16)

        website = store.get_website(data["websiteId"])
        assert website.owner.email == "ops@swapdapp.xyz"
        assert website.settings.track_events.clicks is False
        assert website.settings.track_events.page_views is True

    def test_duplicate_domain(self, client, website):
        response = client.post(
            "/api/v1/websites/register", json={"name": "Again", "domain": "mintdapp.io"}
        )

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "message": "Website with this domain already exists",
        }

    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"name": "", "domain": "valid.io"}, "name"),
            ({"name": "x" * 101, "domain": "valid.io"}, "name"),
            ({"name": "Site", "domain": "not a domain"}, "domain"),
            ({"name": "Site", "domain": "valid.io", "description": "d" * 501}, "description"),
            ({"name": "Site", "domain": "valid.io", "owner": {"email": "nope"}}, "owner.email"),
            ({"name": "Site", "domain": "valid.io", "owner": {"walletAddress": "0x1"}},
             "owner.walletAddress"),
            ({"name": "Site", "domain": "valid.io",
              "settings": {"trackEvents": {"clicks": "sometimes"}}},
             "settings.trackEvents.clicks"),
        ],
    )
    def test_validation(self, client, payload, field):
        response = client.post("/api/v1/websites/register", json=payload)

        assert response.status_code == 400
        assert field in [e["field"] for e in response.json()["errors"]]


@pytest.mark.unit
class TestManageWebsite:
    def test_details(self, client, auth, website):
        response = client.get("/api/v1/websites/details", headers=auth)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["websiteId"] == website["websiteId"]
        assert data["domain"] == "mintdapp.io"
        assert data["stats"]["totalEvents"] == 0
        assert data["settings"]["privacy"]["respectDNT"] is True
        assert "apiKey" not in data

    def test_details_requires_key(self, client, website):
        assert client.get("/api/v1/websites/details").status_code == 401

    def test_update(self, client, auth, store, website):
        response = client.put(
            "/api/v1/websites/update",
            json={"name": "Mint dApp v2", "description": "NFT mints",
                  "settings": {"privacy": {"anonymizeIPs": True}}},
            headers=auth,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert response.json()["message"] == "Website updated successfully"
        assert data["name"] == "Mint dApp v2"
        assert data["description"] == "NFT mints"
        assert data["domain"] == "mintdapp.io"
        assert data["settings"]["privacy"]["anonymizeIPs"] is True

        updated = store.get_website(website["websiteId"])
        assert updated.name == "Mint dApp v2"
        assert updated.updated_at >= updated.created_at

    def test_update_keeps_unset_fields(self, client, auth, store, website):
        client.put("/api/v1/websites/update", json={"description": "first"}, headers=auth)
        client.put("/api/v1/websites/update", json={"name": "Renamed"}, headers=auth)

        updated = store.get_website(website["websiteId"])
        assert updated.name == "Renamed"
        assert updated.description == "first"

    def test_regenerate_api_key(self, client, auth, website):
        response = client.post("/api/v1/websites/regenerate-api-key", headers=auth)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["websiteId"] == website["websiteId"]
        assert data["newApiKey"] != website["apiKey"]
        assert len(data["newApiKey"]) == 64

        assert client.get("/api/v1/websites/details", headers=auth).status_code == 401
        assert client.get(
            "/api/v1/websites/details", headers={"X-API-Key": data["newApiKey"]}
        ).status_code == 200

    def test_delete_is_soft(self, client, auth, store, website):
        response = client.delete("/api/v1/websites/delete", headers=auth)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Website deleted successfully"}
        assert store.get_website(website["websiteId"]).status.value == "suspended"
        assert client.get("/api/v1/websites/details", headers=auth).status_code == 401


@pytest.mark.unit
class TestWebsiteAnalytics:
    def test_overview(self, client, auth):
        events = [
            make_event("page_view", page={"url": "https://mintdapp.io/", "title": "Home"}),
            make_event("page_view", user_id="u2", session_id="s2",
                       page={"url": "https://mintdapp.io/", "title": "Home again"}),
            make_event("page_view", page={"url": "https://mintdapp.io/mint", "title": "Mint"}),
            make_event("wallet_connect", walletType="metamask"),
            make_event("wallet_connect", user_id="u2", session_id="s2", walletType="coinbase"),
            make_event("wallet_connect", user_id="u3", session_id="s3", walletType="other"),
            make_event("transaction_complete"),
            make_event("transaction_failed", user_id="u2", session_id="s2"),
        ]
        client.post("/api/v1/events/track/batch", json={"events": events}, headers=auth)

        response = client.get("/api/v1/websites/analytics", headers=auth)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["overview"] == {
            "totalEvents": 8,
            "uniqueUsers": 3,
            "uniqueSessions": 3,
            "walletConnections": 3,
            "transactions": 2,
            "conversionRate": 66.67,
            "recentEvents": 8,
        }
        assert data["eventTypeBreakdown"][0] == {"_id": "page_view", "count": 3}
        assert data["topPages"] == [
            {"_id": "https://mintdapp.io/", "count": 2, "title": "Home"},
            {"_id": "https://mintdapp.io/mint", "count": 1, "title": "Mint"},
        ]

    def test_overview_without_wallet_connections(self, client, auth):
        client.post("/api/v1/events/track", json=make_event("page_view"), headers=auth)

        overview = client.get("/api/v1/websites/analytics", headers=auth).json()["data"]["overview"]

        assert overview["conversionRate"] == 0
        assert overview["transactions"] == 0

    def test_date_range_does_not_limit_recent_events(self, client, auth):
        client.post("/api/v1/events/track", json=make_event("page_view"), headers=auth)

        overview = client.get(
            "/api/v1/websites/analytics",
            params={"endDate": "2020-01-01T00:00:00Z"},
            headers=auth,
        ).json()["data"]["overview"]

        assert overview["totalEvents"] == 0
        assert overview["recentEvents"] == 1


@pytest.mark.unit
class TestManagementRateLimit:
    def test_register_is_limited_per_client(self):
        client = TestClient(create_app(store=MemoryStore(), api_rate=(2, 900)))

        statuses = [
            client.post(
                "/api/v1/websites/register", json={"name": "S", "domain": f"site{n}.io"}
            ).status_code
            for n in range(3)
        ]

        assert statuses == [201, 201, 429]


@pytest.mark.unit
class TestServiceEndpoints:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "Web3 Funnel Backend is running!"

    def test_health(self, client):
        assert client.get("/health").json()["ok"] is True
