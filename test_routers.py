"""
HTTP surface tests: cron trigger, Apple Wallet web service and pass endpoints.
"""
import json
from unittest.mock import MagicMock

import httplib2
import httpx
import pytest
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError
from sqlmodel import select

from walletsync.core.components import build_components
from walletsync.main import create_app
from walletsync.models.passes import PassRecord, PassRegistration
from walletsync.services.google_wallet_service import GoogleWalletService
from walletsync.services.qr_service import QRCodeService

CRON_HEADERS = {"Authorization": "Bearer cron-secret"}
APPLE_HEADERS = {"Authorization": "ApplePass apple-pass-token-0123456789"}
REGISTRATION_PATH = "/apple-pass/v1/devices/device-lib-1/registrations/pass.com.example.test"


def outbound(request):
    if request.url.host == "tinyurl.com":
        return httpx.Response(200, text="https://tinyurl.com/wallet1")
    return httpx.Response(404)


def make_factory(google_api=None, service_account_info=None):
    def factory(settings):
        components = build_components(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(outbound)),
            apns_client=httpx.AsyncClient(transport=httpx.MockTransport(outbound)),
        )
        if google_api is not None:
            google_service = GoogleWalletService(
                settings, google_api, service_account_info,
                qr_service=QRCodeService(settings, components.http_client),
            )
            components.google_wallet_service = google_service
            components.update_service.google_service = google_service
        return components
    return factory


async def add_rows(session_maker, rows):
    async with session_maker() as session:
        for row in rows:
            session.add(row)
        await session.commit()


async def load_registrations(session_maker):
    async with session_maker() as session:
        result = await session.exec(select(PassRegistration))
        return list(result.all())


@pytest.fixture
def router_settings(settings):
    # Google stays unconfigured unless a test injects a fake discovery client
    settings.GOOGLE_SERVICE_ACCOUNT_KEY = ""
    return settings


@pytest.fixture
def client(router_settings):
    app = create_app(router_settings, components_factory=make_factory(), run_migrations=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def google_api():
    return MagicMock()


@pytest.fixture
def google_client(router_settings, google_api, service_account_info):
    app = create_app(
        router_settings,
        components_factory=make_factory(google_api, service_account_info),
        run_migrations=False,
    )
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:

    def test_health(self, client):
        response = client.get("/health/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_database_health(self, client):
        response = client.get("/health/database")
        assert response.status_code == 200
        assert response.json()["connected"] is True

    def test_full_health_reports_configuration(self, client):
        response = client.get("/health/full")

        assert response.status_code == 200
        services = response.json()["services"]
        assert services["database"]["connected"] is True
        assert services["google_wallet"] == {"configured": False}
        assert services["apple_wallet"] == {"configured": False}


class TestWalletJobsRouter:

    def test_requires_cron_secret(self, client):
        assert client.get("/cron/wallet-jobs").status_code == 401
        assert client.get("/cron/wallet-jobs", headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_empty_run(self, client):
        response = client.get("/cron/wallet-jobs", headers=CRON_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"message": "No wallet jobs to process", "processed": 0, "failed": 0, "total": 0}

    def test_enqueue_and_run(self, client):
        response = client.post(
            "/cron/wallet-jobs/enqueue",
            json={"type": "google_patch", "payload": {"objectId": "X", "balance": 150}},
            headers=CRON_HEADERS,
        )
        assert response.status_code == 201
        job = response.json()
        assert job["type"] == "google_patch"
        assert job["attempts"] == 0
        assert job["payload"] == {"objectId": "X", "balance": 150}

        # Google is not configured, so the patch fails and is rescheduled
        response = client.get("/cron/wallet-jobs", headers=CRON_HEADERS)
        assert response.json() == {
            "message": "Wallet jobs processing complete",
            "processed": 0,
            "failed": 1,
            "dropped": 0,
            "total": 1,
        }

    def test_enqueue_rejects_unknown_type(self, client):
        response = client.post(
            "/cron/wallet-jobs/enqueue", json={"type": "send_fax", "payload": {}}, headers=CRON_HEADERS
        )
        assert response.status_code == 400

    def test_enqueue_rejects_bad_payload(self, client):
        response = client.post(
            "/cron/wallet-jobs/enqueue", json={"type": "apple_push", "payload": {"serialNumber": "S"}},
            headers=CRON_HEADERS,
        )
        assert response.status_code == 422

    def test_enqueue_rejects_non_numeric_balance(self, client):
        response = client.post(
            "/cron/wallet-jobs/enqueue", json={"type": "google_patch", "payload": {"objectId": "X", "balance": "abc"}},
            headers=CRON_HEADERS,
        )
        assert response.status_code == 422
        assert client.portal.call(client.app.state.job_store.count) == 0

    def test_balance_fan_out(self, client):
        client.portal.call(add_rows, client.app.state.session_maker, [
            PassRegistration(customer_program_id="cp-1", wallet_type="google", google_object_id="obj-1"),
            PassRegistration(customer_program_id="cp-1", wallet_type="apple", pass_id="p1",
                             apple_serial_number="obj-1", apple_device_token="tok"),
        ])

        response = client.post(
            "/cron/wallet-jobs/balance", json={"customer_program_id": "cp-1", "new_balance": 200},
            headers=CRON_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["enqueued"] == 2


class TestApplePassRouter:

    def test_requires_pass_token(self, client):
        response = client.post(f"{REGISTRATION_PATH}/SERIAL-1", json={"pushToken": "tok"})
        assert response.status_code == 401

        response = client.post(f"{REGISTRATION_PATH}/SERIAL-1", json={"pushToken": "tok"},
                               headers={"Authorization": "ApplePass wrong"})
        assert response.status_code == 401

    def test_registration_lifecycle(self, client):
        response = client.post(f"{REGISTRATION_PATH}/SERIAL-1", json={"pushToken": "tok-1"}, headers=APPLE_HEADERS)
        assert response.status_code == 201

        response = client.post(f"{REGISTRATION_PATH}/SERIAL-1", json={"pushToken": "tok-2"}, headers=APPLE_HEADERS)
        assert response.status_code == 200

        response = client.get(REGISTRATION_PATH, headers=APPLE_HEADERS)
        assert response.status_code == 200
        assert response.json()["serialNumbers"] == ["SERIAL-1"]

        response = client.delete(f"{REGISTRATION_PATH}/SERIAL-1", headers=APPLE_HEADERS)
        assert response.status_code == 200

        response = client.get(REGISTRATION_PATH, headers=APPLE_HEADERS)
        assert response.status_code == 204

    def test_registration_links_known_pass(self, client):
        pass_record = PassRecord(pass_type="loyalty", title="Acme", object_id="obj-1")
        client.portal.call(add_rows, client.app.state.session_maker, [pass_record])

        client.post(f"{REGISTRATION_PATH}/obj-1", json={"pushToken": "tok"}, headers=APPLE_HEADERS)

        registrations = client.portal.call(load_registrations, client.app.state.session_maker)
        assert [(r.pass_id, r.apple_device_token) for r in registrations] == [(pass_record.id, "tok")]

    def test_latest_pass_by_custom_serial(self, client):
        pass_record = PassRecord(pass_type="loyalty", title="Acme", pass_data={"serialNumber": "CUSTOM-1"})
        client.portal.call(add_rows, client.app.state.session_maker, [pass_record])

        response = client.get("/apple-pass/v1/passes/pass.com.example.test/CUSTOM-1", headers=APPLE_HEADERS)

        # Found, but signing is not configured in this app
        assert response.status_code == 500
        assert response.json()["detail"]["step"] == "signing"

    def test_object_id_takes_precedence_over_custom_serial(self, client):
        client.portal.call(add_rows, client.app.state.session_maker, [
            PassRecord(pass_type="loyalty", title="Acme", object_id="obj-1", pass_data={"serialNumber": "CUSTOM-2"}),
        ])

        response = client.get("/apple-pass/v1/passes/pass.com.example.test/CUSTOM-2", headers=APPLE_HEADERS)

        assert response.status_code == 404

    def test_latest_pass_unknown_serial(self, client):
        response = client.get("/apple-pass/v1/passes/pass.com.example.test/missing", headers=APPLE_HEADERS)
        assert response.status_code == 404


class TestPassesRouter:

    def test_apple_download_not_found(self, client):
        assert client.get("/passes/missing/apple").status_code == 404

    def test_apple_download_without_signing_config(self, client):
        pass_record = PassRecord(pass_type="loyalty", title="Acme", object_id="obj-1")
        client.portal.call(add_rows, client.app.state.session_maker, [pass_record])

        response = client.get(f"/passes/{pass_record.id}/apple")

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["step"] == "signing"
        assert detail["errorType"] == "CONFIGURATION_ERROR"

    def test_apple_download(self, router_settings, signer_cert_pem, signer_key_pem):
        router_settings.APPLE_TEAM_ID = "TEAM123456"
        router_settings.APPLE_PASS_TYPE_ID = "pass.com.example.test"
        router_settings.APPLE_PASS_CERTIFICATE = signer_cert_pem
        router_settings.APPLE_PASS_PRIVATE_KEY = signer_key_pem
        app = create_app(router_settings, components_factory=make_factory(), run_migrations=False)

        with TestClient(app) as client:
            pass_record = PassRecord(pass_type="gift-card", title="Gift", object_id="obj-9",
                                     pass_data={"balance": "USD 50"})
            client.portal.call(add_rows, client.app.state.session_maker, [pass_record])

            response = client.get(f"/passes/{pass_record.id}/apple")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/vnd.apple.pkpass"
        assert 'filename="pass-obj-9.pkpass"' in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_google_create_unconfigured(self, client):
        response = client.post("/passes/google", json={
            "holder": "a@example.com", "pass_type": "loyalty", "pass_data": {"title": "Acme"},
        })
        assert response.status_code == 503

    def test_google_create_validation_error(self, google_client):
        response = google_client.post("/passes/google", json={
            "holder": "a@example.com", "pass_type": "loyalty", "pass_data": {"title": ""},
        })

        assert response.status_code == 400
        assert response.json()["detail"]["step"] == "validation"

    def test_google_create(self, google_client, google_api):
        not_found = HttpError(httplib2.Response({"status": 404}), json.dumps({"error": {"message": "nf"}}).encode())
        google_api.loyaltyclass.return_value.get.return_value.execute.side_effect = not_found
        google_api.loyaltyclass.return_value.insert.return_value.execute.return_value = {}
        google_api.loyaltyobject.return_value.insert.return_value.execute.return_value = {}

        response = google_client.post("/passes/google", json={
            "holder": "a@example.com",
            "pass_type": "loyalty",
            "pass_data": {"title": "Acme Rewards", "pointsBalance": 10},
        })

        assert response.status_code == 201
        body = response.json()
        assert body["objectId"].startswith("3388000000012345678.loyalty_object_")
        assert body["saveUrl"].startswith("https://pay.google.com/gp/v/save/")
        assert body["qrCodes"]["short_url"] == "https://tinyurl.com/wallet1"
        assert body["workflow"]["step1_class"]["status"] == "created"

    def test_google_create_upstream_failure(self, google_client, google_api):
        forbidden = HttpError(httplib2.Response({"status": 403}), b'{"error": {"message": "denied"}}')
        google_api.loyaltyclass.return_value.get.return_value.execute.side_effect = forbidden

        response = google_client.post("/passes/google", json={
            "holder": "a@example.com", "pass_type": "loyalty", "pass_data": {"title": "Acme"},
        })

        assert response.status_code == 502
        assert response.json()["detail"]["errorType"] == "CLASS_VERIFICATION_FAILED"

    def test_register_unknown_pass(self, client):
        response = client.post("/passes/missing/register", json={"customer_program_id": "cp-1", "wallet_type": "apple"})
        assert response.status_code == 404

    def test_register_rejects_unknown_wallet(self, client):
        pass_record = PassRecord(pass_type="loyalty", title="Acme", object_id="obj-1")
        client.portal.call(add_rows, client.app.state.session_maker, [pass_record])

        response = client.post(f"/passes/{pass_record.id}/register",
                               json={"customer_program_id": "cp-1", "wallet_type": "fax"})
        assert response.status_code == 422

    def test_registered_pass_receives_balance_updates(self, client):
        pass_record = PassRecord(pass_type="loyalty", title="Acme", object_id="obj-1")
        client.portal.call(add_rows, client.app.state.session_maker, [pass_record])
        register_path = f"/passes/{pass_record.id}/register"

        response = client.post(register_path, json={"customer_program_id": "cp-1", "wallet_type": "apple"})
        assert response.status_code == 201
        assert response.json()["apple_serial_number"] == "obj-1"

        # Apple Wallet registers the device afterwards and claims the program row
        response = client.post(f"{REGISTRATION_PATH}/obj-1", json={"pushToken": "tok-1"}, headers=APPLE_HEADERS)
        assert response.status_code == 201

        response = client.post(register_path, json={"customer_program_id": "cp-1", "wallet_type": "google"})
        assert response.status_code == 201
        assert response.json()["google_object_id"] == "obj-1"

        response = client.post(register_path, json={"customer_program_id": "cp-1", "wallet_type": "apple"})
        assert response.status_code == 200

        registrations = client.portal.call(load_registrations, client.app.state.session_maker)
        assert sorted((r.wallet_type, r.customer_program_id, r.device_library_id) for r in registrations) == [
            ("apple", "cp-1", "device-lib-1"),
            ("google", "cp-1", None),
        ]

        response = client.post(
            "/cron/wallet-jobs/balance", json={"customer_program_id": "cp-1", "new_balance": 300},
            headers=CRON_HEADERS,
        )
        assert response.json()["enqueued"] == 2

        jobs = [client.portal.call(client.app.state.job_store.get, job_id) for job_id in response.json()["job_ids"]]
        payloads = {job.type: job.payload for job in jobs}
        assert payloads["google_patch"] == {"objectId": "obj-1", "balance": 300}
        assert payloads["regenerate_pkpass"]["passId"] == pass_record.id
        assert payloads["regenerate_pkpass"]["deviceToken"] == "tok-1"

    def test_second_device_inherits_customer_program(self, client):
        pass_record = PassRecord(pass_type="loyalty", title="Acme", object_id="obj-1")
        client.portal.call(add_rows, client.app.state.session_maker, [pass_record])
        client.post(f"/passes/{pass_record.id}/register", json={"customer_program_id": "cp-1", "wallet_type": "apple"})
        client.post(f"{REGISTRATION_PATH}/obj-1", json={"pushToken": "tok-1"}, headers=APPLE_HEADERS)

        other_device = "/apple-pass/v1/devices/device-lib-2/registrations/pass.com.example.test/obj-1"
        response = client.post(other_device, json={"pushToken": "tok-2"}, headers=APPLE_HEADERS)
        assert response.status_code == 201

        registrations = client.portal.call(load_registrations, client.app.state.session_maker)
        assert sorted((r.device_library_id, r.customer_program_id) for r in registrations) == [
            ("device-lib-1", "cp-1"),
            ("device-lib-2", "cp-1"),
        ]
