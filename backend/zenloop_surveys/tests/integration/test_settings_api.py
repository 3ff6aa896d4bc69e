"""
Integration tests for the admin settings page API.

Tests cover:
- Session token and stored session are required
- Billing gate answers 402 with the plan selection URL
- Reading unconfigured and configured settings
- Saving link and form settings, and every validation rejection
- A rejected metafield write is reported as a failed save
"""

import json

import pytest

from zenloop_surveys.platform.errors import REAUTHORIZE_URL_HEADER

VALID_FORM = {"orgId": "123", "surveyId": "456", "displayType": "link"}


@pytest.fixture
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token()}"}


def _metafield_writes(fake_shopify):
    return [r for r in fake_shopify.requests if "metafieldsSet" in r["query"]]


class TestAuthentication:

    def test_missing_token(self, client, shop_session):
        response = client.get("/app/settings")

        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_invalid_token(self, client, shop_session, admin_token):
        token = admin_token(secret="another-secret-0123456789abcdef0123")

        response = client.get("/app/settings", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_no_stored_session(self, client, auth_headers):
        response = client.get("/app/settings", headers=auth_headers)

        assert response.status_code == 401


class TestBillingGate:

    def test_no_active_subscription(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.active_subscriptions = []

        response = client.get("/app/settings", headers=auth_headers)

        assert response.status_code == 402
        redirect_url = response.headers[REAUTHORIZE_URL_HEADER]
        assert redirect_url.startswith("https://admin.shopify.com/store/cool-shop/charges/")
        assert redirect_url.endswith("/pricing_plans")
        assert response.json()["details"]["target"] == "_top"

    def test_cancelled_subscription_is_not_active(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.active_subscriptions[0]["status"] = "CANCELLED"

        response = client.get("/app/settings", headers=auth_headers)

        assert response.status_code == 402

    def test_billing_check_failure_is_auth_error(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.status_code = 503

        response = client.get("/app/settings", headers=auth_headers)

        assert response.status_code == 401


class TestGetSettings:

    def test_unconfigured(self, client, shop_session, auth_headers, fake_shopify):
        response = client.get("/app/settings", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"shopId": fake_shopify.shop_id, "settings": None}

    def test_configured(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.store_settings({"orgId": "123", "surveyId": "456", "displayType": "form"})

        response = client.get("/app/settings", headers=auth_headers)

        assert response.json()["settings"] == {"orgId": "123", "surveyId": "456", "displayType": "form"}

    def test_legacy_value_without_display_type_reads_as_link(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.store_settings({"orgId": "123", "surveyId": "456"})

        response = client.get("/app/settings", headers=auth_headers)

        assert response.json()["settings"]["displayType"] == "link"

    def test_unparseable_value_reads_as_unconfigured(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.metafield_value = "{not json"

        response = client.get("/app/settings", headers=auth_headers)

        assert response.json()["settings"] is None


class TestSaveSettings:

    def test_save_link_settings(self, client, shop_session, auth_headers, fake_shopify, fake_zenloop):
        response = client.post("/app/settings", data=VALID_FORM, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "message": "Settings saved successfully",
            "settings": {"orgId": "123", "surveyId": "456", "displayType": "link"},
        }
        assert json.loads(fake_shopify.metafield_value) == VALID_FORM
        assert fake_zenloop.requests == []

    @pytest.mark.parametrize("form", [
        {"orgId": "123", "surveyId": "456", "displayType": "form"},
        {"orgId": "123", "surveyId": "456", "displayType": "link"},
    ])
    def test_saved_settings_read_back_unchanged(self, client, shop_session, auth_headers, form):
        saved = client.post("/app/settings", data=form, headers=auth_headers)
        assert saved.status_code == 200

        response = client.get("/app/settings", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["settings"] == form
        assert response.json()["settings"] == saved.json()["settings"]

    def test_write_targets_shop_json_metafield(self, client, shop_session, auth_headers, fake_shopify):
        client.post("/app/settings", data=VALID_FORM, headers=auth_headers)

        [write] = _metafield_writes(fake_shopify)
        metafield = write["variables"]["metafields"][0]
        assert metafield["namespace"] == "zenloop"
        assert metafield["key"] == "settings"
        assert metafield["type"] == "json"
        assert metafield["ownerId"] == fake_shopify.shop_id

    def test_fields_are_trimmed(self, client, shop_session, auth_headers, fake_shopify):
        form = {"orgId": " 123 ", "surveyId": "456\n", "displayType": "link"}

        response = client.post("/app/settings", data=form, headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(fake_shopify.metafield_value)["orgId"] == "123"

    def test_save_form_settings_with_rating_question(self, client, shop_session, auth_headers, fake_shopify):
        form = dict(VALID_FORM, displayType="form")

        response = client.post("/app/settings", data=form, headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(fake_shopify.metafield_value)["displayType"] == "form"

    def test_save_overwrites_previous_settings(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.store_settings({"orgId": "1", "surveyId": "2", "displayType": "form"})

        client.post("/app/settings", data=VALID_FORM, headers=auth_headers)

        assert json.loads(fake_shopify.metafield_value) == VALID_FORM

    @pytest.mark.parametrize("form,code", [
        ({"orgId": "123", "surveyId": "456"}, "MISSING_FIELD"),
        ({"orgId": "", "surveyId": "456", "displayType": "link"}, "MISSING_FIELD"),
        ({"orgId": "12a", "surveyId": "456", "displayType": "link"}, "INVALID_NUMBER"),
        ({"orgId": "123", "surveyId": "-4", "displayType": "link"}, "INVALID_NUMBER"),
        ({"orgId": "123", "surveyId": "456", "displayType": "popup"}, "VALIDATION_ERROR"),
    ])
    def test_invalid_input_is_not_saved(self, client, shop_session, auth_headers, fake_shopify, form, code):
        response = client.post("/app/settings", data=form, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == code
        assert _metafield_writes(fake_shopify) == []

    def test_form_without_rating_question_is_rejected(
        self, client, shop_session, auth_headers, fake_shopify, fake_zenloop
    ):
        fake_zenloop.survey_json["pages"][0]["elements"][0]["type"] = "comment"

        response = client.post("/app/settings", data=dict(VALID_FORM, displayType="form"), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "UNSUPPORTED_DISPLAY_TYPE"
        assert _metafield_writes(fake_shopify) == []

    def test_form_rejected_when_survey_lookup_fails(
        self, client, shop_session, auth_headers, fake_shopify, fake_zenloop
    ):
        fake_zenloop.status_code = 500

        response = client.post("/app/settings", data=dict(VALID_FORM, displayType="form"), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "UNSUPPORTED_DISPLAY_TYPE"
        assert fake_shopify.metafield_value is None

    def test_rejected_write_is_commit_failure(self, client, shop_session, auth_headers, fake_shopify):
        fake_shopify.set_user_errors = [{"field": ["metafields", "0", "value"], "message": "Value is invalid JSON"}]

        response = client.post("/app/settings", data=VALID_FORM, headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["code"] == "COMMIT_FAILED"
