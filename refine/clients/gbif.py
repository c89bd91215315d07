"""
Client for the GBIF backbone name matching API (species/match).

Anonymous and read-only. One synchronous HTTP call per lookup, no retries:
failures surface as NameMatchingUnavailable and abort the dataset run.
"""

from typing import Any

import requests
from requests.exceptions import RequestException

from refine.config.settings import Settings
from refine.core.errors import NameMatchingUnavailable
from refine.core.models import Classification, Rank
from refine.observability.logger import get_logger

logger = get_logger(__name__)


class GbifNameMatchingClient:
    """
    Name matching service backed by GET {base_url}/species/match.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            session: HTTP session to use; one is created when omitted
            settings: Settings supplying defaults
        """
        settings = settings or Settings()
        self.base_url = (base_url or settings.gbif_api_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", settings.user_agent)

    @property
    def match_url(self) -> str:
        return f"{self.base_url}/species/match"

    def build_params(
        self,
        name: str,
        rank: Rank | None = None,
        classification: Classification | None = None,
    ) -> dict[str, str]:
        params = {"name": name, "strict": "false", "verbose": "false"}
        if rank is not None:
            params["rank"] = rank.value
        if classification is not None:
            for key, value in classification.as_params().items():
                # species is the queried name itself
                if key != "species":
                    params[key] = value
        return params

    def match(
        self,
        name: str,
        rank: Rank | None = None,
        classification: Classification | None = None,
    ) -> dict[str, Any]:
        """
        Match a name against the backbone.

        Returns:
            Decoded JSON response (matchType, usageKey, scientificName, kingdom...)

        Raises:
            NameMatchingUnavailable: On network errors, HTTP errors or invalid JSON
        """
        params = self.build_params(name, rank, classification)
        try:
            response = self.session.get(self.match_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except RequestException as e:
            raise NameMatchingUnavailable(f"Name matching failed for {name!r}: {e}") from e
        except ValueError as e:
            raise NameMatchingUnavailable(f"Invalid name matching response for {name!r}: {e}") from e

        if not isinstance(payload, dict):
            raise NameMatchingUnavailable(f"Unexpected name matching response for {name!r}: {payload!r}")

        logger.debug(
            f"Matched {name!r}: {payload.get('matchType')}",
            extra={"scientific_name": name, "verbatim_match_type": payload.get("matchType")},
        )
        return payload

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "GbifNameMatchingClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
