"""
Tests for the UPS carrier over a mocked UPS API.
"""
import base64
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from gangrun.core.exceptions import ShippingLabelError
from gangrun.models.shipment import ShippingPackage, TrackingStatus
from gangrun.modules.shipping.carriers.ups import UPSCarrier
from gangrun.services.ups_client import (
    ADDRESS_VALIDATION_PATH,
    OAUTH_TOKEN_PATH,
    RATING_PATH,
    SHIPPING_PATH,
    TRACKING_PATH,
    VOID_PATH,
    UPSAPIError,
)

TOKEN_REPLY = {"access_token": "ups-token", "token_type": "Bearer", "expires_in": "14399"}

RATE_REPLY = {
    "RateResponse": {
        "RatedShipment": [
            {
                "Service": {"Code": "03"},
                "TotalCharges": {"CurrencyCode": "USD", "MonetaryValue": "15.20"},
            },
            {
                "Service": {"Code": "02"},
                "TotalCharges": {"CurrencyCode": "USD", "MonetaryValue": "32.75"},
                "GuaranteedDelivery": {"BusinessDaysInTransit": "2"},
            },
            {
                "Service": {"Code": "14"},
                "TotalCharges": {"CurrencyCode": "USD", "MonetaryValue": "120.00"},
            },
        ]
    }
}


def _carrier(handler, **kwargs):
    return UPSCarrier(
        client_id="client",
        client_secret="secret",
        account_number="A1B2C3",
        max_retries=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _api(routes, token_status=200, token_body=TOKEN_REPLY):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path == OAUTH_TOKEN_PATH:
            if token_status != 200:
                return httpx.Response(token_status, json={"response": {"errors": [{"code": "250002"}]}})
            return httpx.Response(200, json=token_body)
        for path, (status, body) in routes.items():
            if request.url.path.startswith(path):
                if isinstance(body, bytes):
                    return httpx.Response(status, content=body)
                return httpx.Response(status, json=body)
        return httpx.Response(404, json={"response": {"errors": [{"code": "404", "message": "No route"}]}})

    handler.calls = calls
    return handler


class TestRates:

    @pytest.mark.asyncio
    async def test_no_credentials_returns_empty(self, origin, destination, packages):
        assert await UPSCarrier().get_rates(origin, destination, packages) == []

    @pytest.mark.asyncio
    async def test_parses_and_filters_reply(self, origin, destination, packages):
        api = _api({RATING_PATH: (200, RATE_REPLY)})
        carrier = _carrier(api)

        rates = await carrier.get_rates(origin, destination, packages)
        await carrier.close()

        assert [r.service_code for r in rates] == ["03", "02"]
        ground, two_day = rates
        assert ground.service_name == "UPS Ground"
        assert ground.rate_amount == 15.20
        assert ground.estimated_days == 5
        assert not ground.is_guaranteed
        assert two_day.service_name == "UPS 2nd Day Air"
        assert two_day.estimated_days == 2
        assert two_day.is_guaranteed

        rate_request = api.calls[-1]
        assert rate_request.headers["Authorization"] == "Bearer ups-token"
        assert rate_request.url.params["additionalinfo"] == "timeintransit"

    @pytest.mark.asyncio
    async def test_token_uses_basic_auth(self, origin, destination, packages):
        api = _api({RATING_PATH: (200, RATE_REPLY)})

        await _carrier(api).get_rates(origin, destination, packages)

        expected = base64.b64encode(b"client:secret").decode()
        assert api.calls[0].headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_single_rated_shipment_object(self, origin, destination, packages):
        reply = {"RateResponse": {"RatedShipment": RATE_REPLY["RateResponse"]["RatedShipment"][0]}}

        rates = await _carrier(_api({RATING_PATH: (200, reply)})).get_rates(origin, destination, packages)

        assert [r.service_code for r in rates] == ["03"]

    @pytest.mark.asyncio
    async def test_markup_applied(self, origin, destination, packages):
        carrier = _carrier(_api({RATING_PATH: (200, RATE_REPLY)}), markup_percentage=10)

        rates = await carrier.get_rates(origin, destination, packages)

        assert [r.rate_amount for r in rates] == [16.72, 36.03]

    @pytest.mark.asyncio
    async def test_api_error_returns_empty(self, origin, destination, packages):
        error = {"response": {"errors": [{"code": "111210", "message": "Invalid postal code"}]}}
        carrier = _carrier(_api({RATING_PATH: (400, error)}))

        assert await carrier.get_rates(origin, destination, packages) == []

    @pytest.mark.asyncio
    async def test_auth_failure_returns_empty(self, origin, destination, packages):
        carrier = _carrier(_api({RATING_PATH: (200, RATE_REPLY)}, token_status=401))

        assert await carrier.get_rates(origin, destination, packages) == []

    @pytest.mark.asyncio
    async def test_no_packages_returns_empty_without_calls(self, origin, destination):
        api = _api({RATING_PATH: (200, RATE_REPLY)})

        assert await _carrier(api).get_rates(origin, destination, []) == []
        assert api.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token_body", [
        ["not", "an", "object"],
        {"access_token": "ups-token", "expires_in": None},
        {"token_type": "Bearer"},
    ])
    async def test_malformed_token_returns_empty(self, origin, destination, packages, token_body):
        api = _api({RATING_PATH: (200, RATE_REPLY)}, token_body=token_body)

        assert await _carrier(api).get_rates(origin, destination, packages) == []
        assert not any(call.url.path == RATING_PATH for call in api.calls)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate_body", [
        {"RateResponse": {"RatedShipment": [
            {"Service": {"Code": "03"}, "TotalCharges": {"MonetaryValue": "call for quote"}},
        ]}},
        {"RateResponse": {"RatedShipment": ["03"]}},
        ["03", "02"],
        b"<html>Gateway Timeout</html>",
    ])
    async def test_malformed_rate_reply_returns_empty(self, origin, destination, packages, rate_body):
        carrier = _carrier(_api({RATING_PATH: (200, rate_body)}))

        assert await carrier.get_rates(origin, destination, packages) == []


@pytest.mark.asyncio
async def test_client_rejects_empty_package_list(origin, destination):
    carrier = _carrier(_api({}))

    with pytest.raises(UPSAPIError) as exc_info:
        await carrier._get_ups_client().get_rates(origin, destination, [])

    assert exc_info.value.code == "NO_PACKAGES"


class TestShipments:

    @pytest.mark.asyncio
    async def test_create_label(self, origin, destination, packages):
        reply = {
            "ShipmentResponse": {
                "ShipmentResults": {
                    "ShipmentIdentificationNumber": "1Z12345E0205271688",
                    "ShipmentCharges": {"TotalCharges": {"MonetaryValue": "15.20"}},
                    "PackageResults": {
                        "TrackingNumber": "1Z12345E0205271688",
                        "ShippingLabel": {"GraphicImage": "R0lGODlh"},
                    },
                }
            }
        }
        carrier = _carrier(_api({SHIPPING_PATH: (200, reply)}))

        label = await carrier.create_label(origin, destination, packages, "03")

        assert label.tracking_number == "1Z12345E0205271688"
        assert label.label_url == "data:image/gif;base64,R0lGODlh"
        assert label.label_format == "GIF"

    @pytest.mark.asyncio
    async def test_rejected_label_raises(self, origin, destination, packages):
        error = {"response": {"errors": [{"code": "120100", "message": "Missing or invalid shipper number"}]}}
        carrier = _carrier(_api({SHIPPING_PATH: (400, error)}))

        with pytest.raises(ShippingLabelError):
            await carrier.create_label(origin, destination, packages, "03")

    @pytest.mark.asyncio
    async def test_label_without_packages_raises(self, origin, destination):
        api = _api({})

        with pytest.raises(ShippingLabelError) as exc_info:
            await _carrier(api).create_label(origin, destination, [], "03")

        assert exc_info.value.details["code"] == "NO_PACKAGES"
        assert api.calls == []

    @pytest.mark.asyncio
    async def test_single_package_sent_as_object(self, origin, destination):
        reply = {
            "ShipmentResponse": {
                "ShipmentResults": {
                    "PackageResults": {"TrackingNumber": "1Z12345E0205271688"},
                }
            }
        }
        api = _api({SHIPPING_PATH: (200, reply)})

        await _carrier(api).create_label(origin, destination, [ShippingPackage(weight=3.0)], "03")

        sent = json.loads(api.calls[-1].content)["ShipmentRequest"]["Shipment"]["Package"]
        assert sent["Packaging"] == {"Code": "02"}
        assert sent["PackageWeight"]["Weight"] == "3.0"
        assert "PackagingType" not in sent

    @pytest.mark.asyncio
    async def test_track(self):
        reply = {
            "trackResponse": {
                "shipment": [{
                    "package": [{
                        "currentStatus": {"code": "011", "description": "Delivered"},
                        "activity": [{
                            "status": {"type": "D", "description": "DELIVERED"},
                            "location": {"address": {"city": "Phoenix", "stateProvince": "AZ"}},
                            "date": "20261014",
                            "time": "103200",
                        }],
                    }]
                }]
            }
        }
        carrier = _carrier(_api({TRACKING_PATH: (200, reply)}))

        info = await carrier.track("1Z12345E0205271688")

        assert info.status == TrackingStatus.DELIVERED
        assert info.current_location == "Phoenix, AZ"
        assert info.actual_delivery is not None

    @pytest.mark.asyncio
    async def test_void_shipment(self):
        reply = {"VoidShipmentResponse": {"SummaryResult": {"Status": {"Code": "1"}}}}
        carrier = _carrier(_api({VOID_PATH: (200, reply)}))

        result = await carrier.cancel_shipment("1Z12345E0205271688")

        assert result.success

    @pytest.mark.asyncio
    async def test_void_failure_is_unsuccessful(self):
        carrier = _carrier(_api({}))

        result = await carrier.cancel_shipment("1Z12345E0205271688")

        assert not result.success
        assert result.error_message == "No route"


class TestAddressValidation:

    @pytest.mark.asyncio
    async def test_valid_residential(self, destination):
        reply = {
            "XAVResponse": {
                "ValidAddressIndicator": "",
                "AddressClassification": {"Code": "2", "Description": "Residential"},
            }
        }
        carrier = _carrier(_api({ADDRESS_VALIDATION_PATH: (200, reply)}))

        result = await carrier.validate_address(destination)

        assert result.is_valid
        assert result.classification == "RESIDENTIAL"
        assert result.messages == ["UPS classification: residential"]

    @pytest.mark.asyncio
    async def test_no_candidates(self, destination):
        reply = {"XAVResponse": {"NoCandidatesIndicator": ""}}
        carrier = _carrier(_api({ADDRESS_VALIDATION_PATH: (200, reply)}))

        result = await carrier.validate_address(destination)

        assert not result.is_valid
        assert result.classification is None


@pytest.mark.parametrize("status,expected", [
    ("D", TrackingStatus.DELIVERED),
    ("i", TrackingStatus.IN_TRANSIT),
    ("X", TrackingStatus.EXCEPTION),
    ("M", TrackingStatus.PENDING),
    ("??", TrackingStatus.PENDING),
])
def test_map_status(status, expected):
    assert UPSCarrier().map_status(status) == expected


def test_tracking_url():
    assert UPSCarrier().get_tracking_url("1Z999") == "https://www.ups.com/track?tracknum=1Z999"


@pytest.mark.asyncio
async def test_validation_error_yields_invalid_result(destination):
    client = AsyncMock()
    client.validate_address.side_effect = UPSAPIError("Address validation unavailable", code="503")
    carrier = UPSCarrier(client_id="client", client_secret="secret", client=client)

    result = await carrier.validate_address(destination)

    assert not result.is_valid
    assert result.messages == ["Validation error: Address validation unavailable"]
    client.validate_address.assert_awaited_once_with(destination)
