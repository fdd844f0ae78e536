"""
HTTP surface tests: routing, auth and the mapping of domain errors to status codes.
"""
import pytest
from starlette.websockets import WebSocketDisconnect

from auth.dependencies import create_access_token
from database.marketplace_models import Campaign
from services.chat_service import MessageDraft


CAMPAIGN_BODY = {
    "title": "Summer Launch",
    "brand": "Acme",
    "description": "Launch campaign for the summer collection",
    "budget": {"min": 100, "max": 500},
    "preferences": {"platforms": ["instagram"], "content_types": ["post"]},
    "status": "active",
}


def offer_body(campaign_id=None):
    return {
        "influencer_id": "influencer-1",
        "advertiser_id": "advertiser-1",
        "campaign_id": campaign_id,
        "proposed_rate": 500,
        "deliverables": ["1 post"],
        "timeline": "2 weeks",
    }


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class TestAuth:

    def test_missing_token(self, client):
        response = client.get("/offers")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.get("/offers", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_unknown_user(self, client):
        token = create_access_token("ghost")
        response = client.get("/offers", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_influencer_cannot_create_campaign(self, client, influencer, auth_headers):
        response = client.post("/campaigns", json=CAMPAIGN_BODY, headers=auth_headers(influencer))
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------

class TestCampaignEndpoints:

    def test_create_and_fetch(self, client, advertiser, auth_headers):
        response = client.post("/campaigns", json=CAMPAIGN_BODY, headers=auth_headers(advertiser))

        assert response.status_code == 201
        campaign = response.json()
        assert campaign["moderation_status"] == "approved"
        assert campaign["metrics"] == {"applicants": 0, "accepted": 0, "impressions": 0, "engagement": 0}
        assert client.get(f"/campaigns/{campaign['id']}").json()["title"] == "Summer Launch"

    def test_validation_errors_are_listed(self, client, advertiser, auth_headers):
        body = dict(CAMPAIGN_BODY, title="ab", brand="")

        response = client.post("/campaigns", json=body, headers=auth_headers(advertiser))

        assert response.status_code == 422
        assert response.json()["errors"] == [
            "Campaign title must be at least 3 characters",
            "Brand name is required",
        ]

    def test_search(self, client, advertiser, make_campaign):
        make_campaign(advertiser.user_id, title="Sneaker Drop")
        make_campaign(advertiser.user_id, title="Tea Time")

        response = client.get("/campaigns", params={"search": "sneaker", "platform": "instagram"})

        assert [c["title"] for c in response.json()] == ["Sneaker Drop"]

    def test_unknown_campaign(self, client):
        response = client.get("/campaigns/missing")

        assert response.status_code == 404
        assert response.json()["detail"] == "Campaign not found: missing"

    def test_matches_suggest_expanding_criteria(self, client, advertiser, influencer, auth_headers, make_card, make_campaign):
        make_card(influencer.user_id, platform="instagram", countries=("KE",))
        hit = make_campaign(advertiser.user_id, preferences={"platforms": ["instagram"]})
        miss = make_campaign(advertiser.user_id, preferences={"demographics": {"countries": ["FR"]}})

        found = client.get(f"/campaigns/{hit.id}/matches", headers=auth_headers(advertiser)).json()
        empty = client.get(f"/campaigns/{miss.id}/matches", headers=auth_headers(advertiser)).json()

        assert [c["user_id"] for c in found["candidates"]] == [influencer.user_id]
        assert found["candidates"][0]["top_countries"] == ["KE"]
        assert found["expand_criteria"] is False
        assert empty == {"campaign_id": miss.id, "candidates": [], "expand_criteria": True}

    def test_view_tracking(self, client, session, advertiser, influencer, auth_headers, make_campaign):
        campaign = make_campaign(advertiser.user_id)

        first = client.post(f"/campaigns/{campaign.id}/view", headers=auth_headers(influencer))
        second = client.post(f"/campaigns/{campaign.id}/view", headers=auth_headers(influencer))

        assert (first.json()["counted"], second.json()["counted"]) == (True, False)
        session.expire_all()
        assert session.get(Campaign, campaign.id).metrics_impressions == 1

    def test_delete(self, client, advertiser, auth_headers, make_campaign):
        campaign = make_campaign(advertiser.user_id)

        response = client.delete(f"/campaigns/{campaign.id}", headers=auth_headers(advertiser))

        assert response.status_code == 200
        assert client.get(f"/campaigns/{campaign.id}").status_code == 404


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------

class TestOfferEndpoints:

    def test_full_negotiation(self, client, advertiser, influencer, auth_headers, make_campaign):
        campaign = make_campaign(advertiser.user_id)

        created = client.post("/offers", json=offer_body(campaign.id), headers=auth_headers(advertiser))
        assert created.status_code == 201
        offer = created.json()
        assert offer["status"] == "pending"
        assert offer["metadata"] == {"view_count": 0, "message_count": 1}

        countered = client.post(
            f"/offers/{offer['id']}/respond",
            json={"status": "counter", "reason": "Can we do 700?"},
            headers=auth_headers(influencer),
        ).json()
        assert countered["status"] == "counter"
        assert countered["responded_at"] is not None

        resubmitted = client.post(
            f"/offers/{offer['id']}/resubmit",
            json={"proposed_rate": 700},
            headers=auth_headers(advertiser),
        ).json()
        assert (resubmitted["status"], resubmitted["proposed_rate"]) == ("pending", 700)

        accepted = client.post(
            f"/offers/{offer['id']}/respond", json={"status": "accepted"}, headers=auth_headers(influencer),
        ).json()
        assert accepted["status"] == "accepted"

        completed = client.post(f"/offers/{offer['id']}/complete", headers=auth_headers(advertiser)).json()
        assert completed["status"] == "completed"
        assert completed["completed_at"] is not None

        late = client.post(
            f"/offers/{offer['id']}/respond", json={"status": "declined"}, headers=auth_headers(influencer),
        )
        assert late.status_code == 409

        history = client.get(f"/offers/{offer['id']}/history", headers=auth_headers(influencer)).json()
        assert [h["new_status"] for h in history] == ["pending", "counter", "pending", "accepted", "completed"]

        assert client.get(f"/campaigns/{campaign.id}").json()["metrics"]["accepted"] == 1

    def test_non_positive_rate(self, client, advertiser, influencer, auth_headers):
        body = dict(offer_body(), proposed_rate=0)

        response = client.post("/offers", json=body, headers=auth_headers(advertiser))

        assert response.status_code == 422
        assert response.json()["errors"] == ["Proposed rate must be greater than 0"]
        assert client.get("/offers", headers=auth_headers(advertiser)).json() == []

    def test_withdraw_by_counterparty_is_forbidden(self, client, advertiser, influencer, auth_headers):
        offer = client.post("/offers", json=offer_body(), headers=auth_headers(advertiser)).json()

        response = client.post(f"/offers/{offer['id']}/withdraw", headers=auth_headers(influencer))

        assert response.status_code == 403

    def test_offer_notifications(self, client, advertiser, influencer, auth_headers):
        client.post("/offers", json=offer_body(), headers=auth_headers(advertiser))

        notifications = client.get("/notifications", headers=auth_headers(influencer)).json()
        assert [n["type"] for n in notifications] == ["offer_received"]

        marked = client.patch(f"/notifications/{notifications[0]['id']}/read", headers=auth_headers(influencer))
        assert marked.status_code == 200
        assert client.get("/notifications/unread-count", headers=auth_headers(influencer)).json() == {"unread_count": 0}


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class TestChatEndpoints:

    def test_send_and_read_back(self, client, advertiser, influencer, auth_headers):
        sent = client.post(
            "/chat/messages",
            json={"receiver_id": influencer.user_id, "content": "Hi!", "correlation_id": "c-1"},
            headers=auth_headers(advertiser),
        )

        assert sent.status_code == 201
        message = sent.json()
        assert set(message) >= {"id", "sender_id", "receiver_id", "content", "type", "timestamp"}
        assert message["correlation_id"] == "c-1"

        conversation = client.get(
            f"/chat/conversations/{advertiser.user_id}", headers=auth_headers(influencer),
        ).json()
        assert [m["id"] for m in conversation] == [message["id"]]

        chats = client.get("/chat/chats", headers=auth_headers(influencer)).json()
        assert chats[0]["unread_count"] == 1

        client.patch("/chat/messages/read", json={"message_ids": [message["id"]]}, headers=auth_headers(influencer))
        assert client.get("/chat/unread-count", headers=auth_headers(influencer)).json() == {"unread_count": 0}

    def test_incomplete_profile(self, client, incomplete_user, advertiser, auth_headers):
        response = client.post(
            "/chat/messages",
            json={"receiver_id": advertiser.user_id, "content": "Hi"},
            headers=auth_headers(incomplete_user),
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Complete your basic profile information before sending messages"

    def test_rate_limit_warning(self, client, advertiser, influencer, auth_headers):
        headers = auth_headers(advertiser)
        body = {"receiver_id": influencer.user_id, "content": "ping"}
        for _ in range(10):
            assert client.post("/chat/messages", json=body, headers=headers).status_code == 201

        response = client.post("/chat/messages", json=body, headers=headers)

        assert response.status_code == 429
        assert response.json()["warning_ttl"] == 5
        assert response.json()["retry_after"] > 0
        assert "Retry-After" in response.headers

    def test_connection_status(self, client, advertiser, auth_headers):
        response = client.get("/chat/status", headers=auth_headers(advertiser))

        assert response.json() == {"state": "connected", "queued_messages": 0}

    def test_connection_status_only_counts_own_backlog(self, client, advertiser, influencer, auth_headers):
        client.app.state.delivery_queue.enqueue(MessageDraft(advertiser.user_id, influencer.user_id, "stuck"))

        own = client.get("/chat/status", headers=auth_headers(advertiser)).json()
        other = client.get("/chat/status", headers=auth_headers(influencer)).json()

        assert own == {"state": "connecting", "queued_messages": 1}
        assert other == {"state": "connected", "queued_messages": 0}

    def test_websocket_receives_messages(self, client, advertiser, influencer, auth_headers):
        token = create_access_token(influencer.user_id)

        with client.websocket_connect(f"/chat/ws?token={token}") as ws:
            assert ws.receive_json() == {"type": "connection", "data": {"state": "connected", "queued_messages": 0}}

            sent = client.post(
                "/chat/messages",
                json={"receiver_id": influencer.user_id, "content": "Live!"},
                headers=auth_headers(advertiser),
            ).json()

            event = ws.receive_json()
            assert event["type"] == "message"
            assert (event["data"]["id"], event["data"]["content"]) == (sent["id"], "Live!")

            ws.send_text("ping")
            assert ws.receive_text() == "pong"

    def test_websocket_requires_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/chat/ws") as ws:
                ws.receive_json()
