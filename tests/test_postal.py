"""Tests for postal code lookup and auto-fill."""

import httpx
import pytest

from storefront.errors import PostalLookupError, ValidationError
from storefront.postal import HttpPostalLookup, _parse_response, autofill

from .conftest import FakePostalLookup

SUCCESS_BODY = [
    {
        "Message": "Number of pincode(s) found:1",
        "Status": "Success",
        "PostOffice": [
            {
                "Name": "Chennai G.P.O.",
                "District": "Chennai",
                "State": "Tamil Nadu",
                "Country": "India",
            }
        ],
    }
]


def http_lookup(handler) -> HttpPostalLookup:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpPostalLookup(base_url="https://pin.example/pincode/", client=client)


class TestHttpPostalLookup:
    def test_success(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=SUCCESS_BODY)

        info = http_lookup(handler).lookup("600001")

        assert seen == ["https://pin.example/pincode/600001"]
        assert (info.city, info.state, info.country) == ("Chennai", "Tamil Nadu", "India")

    def test_http_error(self):
        lookup = http_lookup(lambda request: httpx.Response(503))

        with pytest.raises(PostalLookupError, match="HTTP 503"):
            lookup.lookup("600001")

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PostalLookupError, match="request error"):
            http_lookup(handler).lookup("600001")

    def test_non_json(self):
        lookup = http_lookup(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(PostalLookupError, match="non-JSON"):
            lookup.lookup("600001")


class TestParseResponse:
    def test_error_status(self):
        body = [{"Message": "No records found", "Status": "Error", "PostOffice": None}]
        with pytest.raises(PostalLookupError, match="No records found"):
            _parse_response("999999", body)

    @pytest.mark.parametrize("body", [{}, [], ["x"], None])
    def test_unexpected_shape(self, body):
        with pytest.raises(PostalLookupError, match="unexpected response shape"):
            _parse_response("600001", body)

    def test_falls_back_to_office_name(self):
        body = [{"Status": "Success", "PostOffice": [{"Name": "Fort", "State": "Maharashtra"}]}]
        info = _parse_response("400001", body)
        assert info.city == "Fort"
        assert info.country == "India"


class TestAutofill:
    def test_found(self):
        lookup = FakePostalLookup({"600001": ("Chennai", "Tamil Nadu")})
        assert autofill(lookup, " 600001 ").city == "Chennai"

    def test_lookup_failure_returns_none(self):
        assert autofill(FakePostalLookup({}), "600001") is None

    def test_malformed_code_raises(self):
        with pytest.raises(ValidationError):
            autofill(FakePostalLookup({}), "6000")
