"""
Soundtrack Your Brand GraphQL client.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

import httpx

from ..exceptions import VolumeApplyError
from ..schemas import AccountInfo, SoundZone
from .controller import BaseVolumeController, check_volume

logger = logging.getLogger(__name__)

SET_VOLUME_MUTATION = """
mutation SetVolume($soundZone: ID!, $volume: Volume!) {
  setVolume(input: { soundZone: $soundZone, volume: $volume }) {
    volume
  }
}
"""

GET_ACCOUNT_QUERY = """
query GetAccountInfo($accountId: ID!) {
  account(id: $accountId) {
    id
    businessName
  }
}
"""

GET_ZONES_QUERY = """
query GetSoundZones($accountId: ID!) {
  account(id: $accountId) {
    id
    businessName
    locations(first: 10) {
      edges {
        node {
          id
          name
          soundZones(first: 20) {
            edges {
              node {
                id
                name
                isPaired
                device {
                  id
                }
              }
            }
          }
        }
      }
    }
  }
}
"""


class SoundtrackClient(BaseVolumeController):
    """
    Thin GraphQL client. Every failure (transport, HTTP status, or GraphQL
    ``errors``) surfaces as VolumeApplyError with the API's messages.
    """

    def __init__(
        self,
        api_url: str,
        token: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_url = api_url
        self._client = httpx.Client(
            headers={
                "Authorization": f"Basic {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a GraphQL document and return its ``data`` object."""
        try:
            response = self._client.post(
                self.api_url, json={"query": query, "variables": variables}
            )
        except httpx.HTTPError as exc:
            raise VolumeApplyError(f"request to {self.api_url} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            messages = [str(err.get("message", err)) for err in errors]
            raise VolumeApplyError("Soundtrack API returned errors", messages)

        if response.is_error:
            raise VolumeApplyError(
                f"Soundtrack API responded with HTTP {response.status_code}",
                [response.text[:200]] if response.text else [],
            )
        if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
            raise VolumeApplyError("Soundtrack API response has no data")
        return body["data"]

    def set_volume(self, zone_id: str, volume: int) -> int:
        check_volume(volume)
        data = self.execute(SET_VOLUME_MUTATION, {"soundZone": zone_id, "volume": volume})
        result = data.get("setVolume") or {}
        acknowledged = result.get("volume")
        if isinstance(acknowledged, bool) or not isinstance(acknowledged, int):
            raise VolumeApplyError(f"setVolume for zone {zone_id} returned no volume")
        logger.info("soundtrack.set_volume zone=%s requested=%s acknowledged=%s", zone_id, volume, acknowledged)
        return acknowledged

    def get_account(self, account_id: str) -> Optional[AccountInfo]:
        data = self.execute(GET_ACCOUNT_QUERY, {"accountId": account_id})
        account = data.get("account")
        if not account:
            return None
        return AccountInfo(id=account.get("id") or account_id, business_name=account.get("businessName"))

    def list_zones(self, account_id: str) -> List[SoundZone]:
        """
        Flatten account → locations → sound zones. Zone names are prefixed
        with their location so zones in different sites stay distinguishable.
        """
        data = self.execute(GET_ZONES_QUERY, {"accountId": account_id})
        account = data.get("account") or {}
        zones: List[SoundZone] = []
        for loc_edge in (account.get("locations") or {}).get("edges") or []:
            location = loc_edge.get("node") or {}
            for zone_edge in (location.get("soundZones") or {}).get("edges") or []:
                zone = zone_edge.get("node") or {}
                if not zone.get("id"):
                    continue
                device = zone.get("device") or {}
                zones.append(
                    SoundZone(
                        id=zone.get("id"),
                        name=f"{location.get('name', '')} - {zone.get('name', '')}",
                        is_paired=bool(zone.get("isPaired")),
                        device_id=device.get("id"),
                    )
                )
        return zones

    def close(self) -> None:
        self._client.close()
