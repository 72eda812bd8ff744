"""
Tests for Google Wallet payloads, class/object sync, patch routing and save links.
"""
import json
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError
from jose import jwt

from walletsync.schemas.wallets import ClassStatus, ErrorType, WorkflowStep
from walletsync.services import google_wallet_payloads as payloads
from walletsync.services.google_wallet_service import GoogleWalletService, load_service_account_info
from walletsync.exceptions import ConfigurationError

ISSUER = "3388000000012345678"


def http_error(status: int, message: str = "error") -> HttpError:
    body = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(httplib2.Response({"status": status}), body)


class TickingClock:
    def __init__(self, start: float = 1_760_000_000.0):
        self.value = start

    def __call__(self) -> float:
        self.value += 0.001
        return self.value


@pytest.fixture
def wallet_api():
    return MagicMock()


@pytest.fixture
def google_service(settings, wallet_api, service_account_info):
    return GoogleWalletService(settings, wallet_api, service_account_info, clock=TickingClock())


class TestIdentifiers:

    def test_identical_branding_yields_identical_template_id(self):
        pass_data = {"title": "Acme Rewards", "brandColor": "#112233", "logo": "https://x/y.png"}

        first = payloads.template_id(ISSUER, "loyalty", dict(pass_data))
        second = payloads.template_id(ISSUER, "loyalty", dict(pass_data, pointsBalance=99))

        assert first == second
        assert first.startswith(f"{ISSUER}.loyalty_class_")

    def test_branding_change_yields_new_template_id(self):
        base = {"title": "Acme Rewards", "brandColor": "#112233", "logo": "https://x/y.png"}

        assert payloads.template_id(ISSUER, "loyalty", base) != payloads.template_id(
            ISSUER, "loyalty", dict(base, brandColor="#445566")
        )
        assert payloads.template_id(ISSUER, "loyalty", base) != payloads.template_id(ISSUER, "offer", base)

    def test_object_ids_are_unique_per_timestamp(self):
        first = payloads.object_id(ISSUER, "gift-card", "a@example.com", 1_700_000_000_000)
        second = payloads.object_id(ISSUER, "gift-card", "a@example.com", 1_700_000_000_001)

        assert first != second
        assert first.startswith(f"{ISSUER}.gift-card_object_")
        assert first.endswith("_1700000000000")

    def test_pass_type_tag_is_read_back(self):
        obj_id = payloads.object_id(ISSUER, "offer", "a@example.com", 1)

        assert payloads.pass_type_from_object_id(obj_id) == "offer"
        assert payloads.pass_type_from_object_id(f"{ISSUER}.legacy-object-42") is None


class TestPayloadHelpers:

    @pytest.mark.parametrize("value,expected", [
        ("2026-05-01", "2026-05-01T23:59:59Z"),
        ("2026-05-01T10:00:00Z", "2026-05-01T10:00:00Z"),
        ("2026-05-01 10:00:00+02:00", "2026-05-01T08:00:00Z"),
        ("next tuesday", "2099-12-31T23:59:59Z"),
        ("", ""),
    ])
    def test_format_wallet_date(self, value, expected):
        assert payloads.format_wallet_date(value) == expected

    def test_validate_requires_title_and_known_type(self):
        assert payloads.validate_pass_data("loyalty", {"title": "Acme"}) == (True, [])

        valid, errors = payloads.validate_pass_data("boarding", {"title": "  "})
        assert not valid
        assert len(errors) == 2

        valid, errors = payloads.validate_pass_data("gift-card", {"title": "Card", "balance": "lots"})
        assert not valid

    def test_gift_card_balance_in_micros(self):
        obj = payloads.gift_card_object("o", "c", {"title": "Card", "balance": "50"}, 1_700_000_000_000)

        assert obj["balance"] == {"micros": "50000000", "currencyCode": "USD"}
        assert obj["cardNumber"] == "GC00000000"

    def test_loyalty_object_points_and_barcode(self):
        obj = payloads.loyalty_object(
            f"{ISSUER}.loyalty_object_abc_1", "c",
            {"title": "Acme", "pointsBalance": "120", "tier": "gold"}, 1_700_000_012_345,
        )

        assert obj["loyaltyPoints"]["balance"] == {"int": 120}
        assert obj["accountId"] == "MEMBER00012345"
        assert obj["barcode"]["value"] == f"{ISSUER}.loyalty_object_abc_1"
        assert obj["textModulesData"][0]["body"] == "GOLD"

    def test_negative_balance_tier_progress(self):
        obj = payloads.loyalty_object(
            "o", "c", {"title": "Acme", "pointsBalance": -50, "pointsToNextTier": 50, "nextTier": "Gold"}, 1,
        )

        progress = [module for module in obj["textModulesData"] if module["id"] == "tier_progress"]
        assert progress[0]["body"].startswith("0% to Gold tier.")

    def test_relative_logo_becomes_absolute(self):
        cls = payloads.loyalty_class("c", {"title": "Acme", "logo": "/uploads/logo.png"}, "https://wallet.example.com/")

        assert cls["programLogo"]["sourceUri"]["uri"] == "https://wallet.example.com/uploads/logo.png"

    def test_offer_uses_provided_code(self):
        obj = payloads.offer_object("o", "c", {"title": "Sale", "offerCode": "save10"}, 1)

        assert obj["textModulesData"][0]["body"] == "SAVE10"
        assert obj["barcode"]["value"] == "save10"


class TestServiceAccount:

    def test_escaped_newlines_are_restored(self, service_account_info):
        raw = json.dumps(dict(service_account_info, private_key="line1\\nline2"))

        assert load_service_account_info(raw)["private_key"] == "line1\nline2"

    def test_missing_key_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            load_service_account_info("")
        with pytest.raises(ConfigurationError):
            load_service_account_info("{not json")


class TestGetOrCreateClass:

    @pytest.mark.asyncio
    async def test_existing_class_is_refreshed(self, google_service, wallet_api):
        resource = wallet_api.loyaltyclass.return_value
        resource.get.return_value.execute.return_value = {"id": "c"}
        class_payload = {"id": "c", "reviewStatus": "UNDER_REVIEW", "programName": "Acme", "issuerName": "Acme"}

        result = await google_service.get_or_create_class("loyalty", "c", class_payload)

        assert result.success
        assert result.status == ClassStatus.EXISTS
        resource.insert.assert_not_called()
        patch_kwargs = resource.patch.call_args.kwargs
        assert patch_kwargs["resourceId"] == "c"
        assert set(patch_kwargs["updateMask"].split(",")) == {"programName", "issuerName"}

    @pytest.mark.asyncio
    async def test_refresh_failure_is_not_fatal(self, google_service, wallet_api):
        resource = wallet_api.offerclass.return_value
        resource.get.return_value.execute.return_value = {"id": "c"}
        resource.patch.return_value.execute.side_effect = http_error(400, "bad mask")

        result = await google_service.get_or_create_class("offer", "c", {"id": "c", "title": "Sale"})

        assert result.success
        assert result.status == ClassStatus.EXISTS

    @pytest.mark.asyncio
    async def test_missing_class_is_created(self, google_service, wallet_api):
        resource = wallet_api.giftcardclass.return_value
        resource.get.return_value.execute.side_effect = http_error(404, "not found")
        resource.insert.return_value.execute.return_value = {"id": "c"}

        result = await google_service.get_or_create_class("gift-card", "c", {"id": "c"})

        assert result.status == ClassStatus.CREATED
        resource.insert.assert_called_once_with(body={"id": "c"})

    @pytest.mark.asyncio
    async def test_failed_insert(self, google_service, wallet_api):
        resource = wallet_api.genericclass.return_value
        resource.get.return_value.execute.side_effect = http_error(404, "not found")
        resource.insert.return_value.execute.side_effect = http_error(400, "invalid class")

        result = await google_service.get_or_create_class("generic", "c", {"id": "c"})

        assert not result.success
        assert result.status == ClassStatus.FAILED
        assert result.error_type == ErrorType.CLASS_CREATION_FAILED

    @pytest.mark.asyncio
    async def test_other_lookup_errors_are_verification_failures(self, google_service, wallet_api):
        resource = wallet_api.loyaltyclass.return_value
        resource.get.return_value.execute.side_effect = http_error(403, "forbidden")

        result = await google_service.get_or_create_class("loyalty", "c", {"id": "c"})

        assert result.error_type == ErrorType.CLASS_VERIFICATION_FAILED
        resource.insert.assert_not_called()


class TestCreateObject:

    @pytest.mark.asyncio
    async def test_not_approved_class(self, google_service, wallet_api):
        wallet_api.loyaltyobject.return_value.insert.return_value.execute.side_effect = http_error(
            404, "The class is not approved"
        )

        result = await google_service.create_object("loyalty", {"id": "o", "classId": "c"})

        assert not result.success
        assert result.error_type == ErrorType.CLASS_NOT_APPROVED

    @pytest.mark.asyncio
    async def test_other_failure(self, google_service, wallet_api):
        wallet_api.loyaltyobject.return_value.insert.return_value.execute.side_effect = http_error(409, "exists")

        result = await google_service.create_object("loyalty", {"id": "o", "classId": "c"})

        assert result.error_type == ErrorType.OBJECT_CREATION_FAILED


class TestPatchObject:

    @pytest.mark.asyncio
    async def test_tagged_id_goes_straight_to_its_endpoint(self, google_service, wallet_api):
        obj_id = payloads.object_id(ISSUER, "gift-card", "a@example.com", 1)
        wallet_api.giftcardobject.return_value.patch.return_value.execute.return_value = {"id": obj_id}

        result = await google_service.patch_object(obj_id, {"state": "ACTIVE"})

        assert result.success
        assert result.endpoint == "giftcardobject"
        wallet_api.loyaltyobject.assert_not_called()

    @pytest.mark.asyncio
    async def test_untagged_id_tries_endpoints_in_order(self, google_service, wallet_api):
        wallet_api.loyaltyobject.return_value.patch.return_value.execute.side_effect = http_error(404)
        wallet_api.giftcardobject.return_value.patch.return_value.execute.return_value = {"id": "legacy"}

        result = await google_service.patch_object(f"{ISSUER}.legacy", {"state": "ACTIVE"})

        assert result.success
        assert result.endpoint == "giftcardobject"
        wallet_api.offerobject.assert_not_called()

    @pytest.mark.asyncio
    async def test_untagged_id_missing_everywhere_is_object_not_found(self, google_service, wallet_api):
        for name in ("loyaltyobject", "giftcardobject", "offerobject", "genericobject"):
            getattr(wallet_api, name).return_value.patch.return_value.execute.side_effect = http_error(404)

        result = await google_service.patch_object(f"{ISSUER}.legacy", {"state": "ACTIVE"})

        assert not result.success
        assert result.error_type == ErrorType.OBJECT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_rejected_tagged_patch_is_patch_failed(self, google_service, wallet_api):
        obj_id = payloads.object_id(ISSUER, "loyalty", "a@example.com", 1)
        wallet_api.loyaltyobject.return_value.patch.return_value.execute.side_effect = http_error(400, "bad body")

        result = await google_service.patch_object(obj_id, {"loyaltyPoints": {}})

        assert not result.success
        assert result.error_type == ErrorType.PATCH_FAILED
        assert "bad body" in result.error


class TestSaveLink:

    def test_claims(self, google_service, service_account_info):
        link = google_service.build_save_link("gift-card", {"id": "c"}, {"id": "o"})

        assert link.save_url == f"https://pay.google.com/gp/v/save/{link.token}"
        assert jwt.get_unverified_header(link.token)["alg"] == "RS256"
        claims = jwt.get_unverified_claims(link.token)
        assert claims["iss"] == service_account_info["client_email"]
        assert claims["aud"] == "google"
        assert claims["typ"] == "savetowallet"
        assert claims["origins"] == ["wallet.example.com"]
        assert claims["payload"] == {"giftCardClasses": [{"id": "c"}], "giftCardObjects": [{"id": "o"}]}
        assert "exp" not in claims


class TestCreatePass:

    @pytest.mark.asyncio
    async def test_validation_failure(self, google_service, wallet_api):
        result = await google_service.create_pass("a@example.com", "loyalty", {"title": ""})

        assert not result.success
        assert result.step == WorkflowStep.VALIDATION
        assert result.validation_errors
        wallet_api.loyaltyclass.assert_not_called()

    @pytest.mark.asyncio
    async def test_class_failure_stops_workflow(self, google_service, wallet_api):
        wallet_api.loyaltyclass.return_value.get.return_value.execute.side_effect = http_error(500, "boom")

        result = await google_service.create_pass("a@example.com", "loyalty", {"title": "Acme"})

        assert result.step == WorkflowStep.CLASS_CREATION
        wallet_api.loyaltyobject.assert_not_called()

    @pytest.mark.asyncio
    async def test_full_workflow(self, google_service, wallet_api):
        wallet_api.loyaltyclass.return_value.get.return_value.execute.side_effect = http_error(404)
        wallet_api.loyaltyclass.return_value.insert.return_value.execute.return_value = {}
        wallet_api.loyaltyobject.return_value.insert.return_value.execute.return_value = {}

        result = await google_service.create_pass(
            "a@example.com", "loyalty", {"title": "Acme Rewards", "brandColor": "#112233", "pointsBalance": 10}
        )

        assert result.success
        assert result.class_status == ClassStatus.CREATED
        assert result.class_id == payloads.template_id(
            ISSUER, "loyalty", {"title": "Acme Rewards", "brandColor": "#112233"}
        )
        assert result.object_id.startswith(f"{ISSUER}.loyalty_object_")
        assert result.save_url.startswith("https://pay.google.com/gp/v/save/")
        assert result.workflow["step1_class"] == {"id": result.class_id, "status": "created"}
        inserted = wallet_api.loyaltyobject.return_value.insert.call_args.kwargs["body"]
        assert inserted["classId"] == result.class_id

    @pytest.mark.asyncio
    async def test_unusable_signing_key_fails_at_save_link(self, settings, wallet_api, service_account_info):
        broken_account = dict(service_account_info, private_key="not a key")
        google_service = GoogleWalletService(settings, wallet_api, broken_account, clock=TickingClock())
        wallet_api.loyaltyclass.return_value.get.return_value.execute.return_value = {}
        wallet_api.loyaltyobject.return_value.insert.return_value.execute.return_value = {}

        result = await google_service.create_pass("a@example.com", "loyalty", {"title": "Acme"})

        assert not result.success
        assert result.step == WorkflowStep.SAVE_LINK
        assert result.error_type == ErrorType.CONFIGURATION_ERROR
        assert result.object_id.startswith(f"{ISSUER}.loyalty_object_")
