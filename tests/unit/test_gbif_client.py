"""
Unit tests for the GBIF name matching client.

A fake session stands in for requests.Session; nothing goes over the network.
"""

import pytest
import requests

from refine.clients.gbif import GbifNameMatchingClient
from refine.config.settings import Settings
from refine.core.errors import NameMatchingUnavailable
from refine.core.models import Classification, Rank


class FakeResponse:
    def __init__(self, payload=None, status_code=200, invalid_json=False):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.headers = {}
        self.requests = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


@pytest.mark.unit
class TestGbifNameMatchingClient:
    """Tests for GbifNameMatchingClient"""

    def test_match_request(self):
        session = FakeSession(FakeResponse({"matchType": "EXACT", "usageKey": 2394331}))
        client = GbifNameMatchingClient(base_url="https://api.example.org/v1/", timeout=5, session=session)
        hints = Classification(family="Acanthuridae", species="Naso lituratus")

        payload = client.match("Naso lituratus", rank=Rank.SPECIES, classification=hints)

        assert payload["usageKey"] == 2394331
        url, params, timeout = session.requests[0]
        assert url == "https://api.example.org/v1/species/match"
        assert timeout == 5
        assert params == {
            "name": "Naso lituratus",
            "strict": "false",
            "verbose": "false",
            "rank": "SPECIES",
            "family": "Acanthuridae",
        }

    def test_params_without_rank_or_hints(self):
        client = GbifNameMatchingClient(session=FakeSession())
        assert client.build_params("Naso") == {"name": "Naso", "strict": "false", "verbose": "false"}

    def test_class_hint_param(self):
        client = GbifNameMatchingClient(session=FakeSession())
        params = client.build_params("Larus", classification=Classification(class_="Aves"))
        assert params["class"] == "Aves"

    def test_defaults_from_settings(self):
        settings = Settings(gbif_api_url="http://localhost:8080", http_timeout=2.5, user_agent="tests/1.0")
        session = FakeSession()
        client = GbifNameMatchingClient(settings=settings, session=session)
        assert client.match_url == "http://localhost:8080/species/match"
        assert client.timeout == 2.5
        assert session.headers["User-Agent"] == "tests/1.0"

    def test_network_error(self):
        client = GbifNameMatchingClient(session=FakeSession(error=requests.ConnectionError("refused")))
        with pytest.raises(NameMatchingUnavailable, match="refused"):
            client.match("Naso lituratus")

    def test_http_error(self):
        client = GbifNameMatchingClient(session=FakeSession(FakeResponse(status_code=503)))
        with pytest.raises(NameMatchingUnavailable, match="503"):
            client.match("Naso lituratus")

    def test_invalid_json(self):
        client = GbifNameMatchingClient(session=FakeSession(FakeResponse(invalid_json=True)))
        with pytest.raises(NameMatchingUnavailable, match="Invalid"):
            client.match("Naso lituratus")

    def test_unexpected_payload(self):
        client = GbifNameMatchingClient(session=FakeSession(FakeResponse(["not", "a", "dict"])))
        with pytest.raises(NameMatchingUnavailable, match="Unexpected"):
            client.match("Naso lituratus")

    def test_injected_session_not_closed(self):
        session = FakeSession()
        with GbifNameMatchingClient(session=session):
            pass
        assert session.closed is False
