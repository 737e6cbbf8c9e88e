"""
PortPro TMS API client for pulling load records.
"""
import logging
from typing import List, Optional

import httpx
from django.conf import settings

from portpro.services.errors import VendorUnavailable

logger = logging.getLogger(__name__)


class PortProClient:
    """
    Thin wrapper over the PortPro REST API with bearer auth.

    A 401 triggers one access-token refresh through /auth/refresh and a
    single retry of the original request.
    """

    def __init__(self, base_url: str, access_token: str, refresh_token: str = '',
                 timeout: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> 'PortProClient':
        access_token = settings.PORTPRO_ACCESS_TOKEN
        refresh_token = settings.PORTPRO_REFRESH_TOKEN
        if not access_token or not refresh_token:
            raise VendorUnavailable("PortPro credentials not configured")
        return cls(
            settings.PORTPRO_API_URL,
            access_token,
            refresh_token,
            timeout=settings.PORTPRO_TIMEOUT_SECONDS,
        )

    def _headers(self) -> dict:
        return {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json',
        }

    def _request(self, method: str, endpoint: str, params: Optional[dict] = None,
                 allow_refresh: bool = True) -> dict:
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"PortPro {method} {url} params={params}")

        try:
            response = httpx.request(
                method,
                url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling PortPro API: {e}")
            raise VendorUnavailable(f"PortPro API timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling PortPro API: {e}")
            raise VendorUnavailable(f"PortPro API unreachable: {e}") from e

        if response.status_code == 401 and allow_refresh:
            logger.info("PortPro access token rejected, refreshing")
            self.refresh_access_token()
            return self._request(method, endpoint, params=params, allow_refresh=False)

        if not 200 <= response.status_code < 300:
            logger.error(f"PortPro API error {response.status_code}: {response.text}")
            raise VendorUnavailable(f"PortPro API error: {response.status_code} - {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise VendorUnavailable(f"PortPro API returned invalid JSON: {e}") from e

    def refresh_access_token(self) -> str:
        try:
            response = httpx.post(
                f"{self.base_url}/auth/refresh",
                json={'refreshToken': self.refresh_token},
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
        except httpx.HTTPError as e:
            raise VendorUnavailable(f"Failed to refresh PortPro access token: {e}") from e

        if not 200 <= response.status_code < 300:
            raise VendorUnavailable("Failed to refresh PortPro access token")

        try:
            self.access_token = response.json().get('accessToken', '')
        except ValueError as e:
            raise VendorUnavailable(f"PortPro token refresh returned invalid JSON: {e}") from e
        logger.info("PortPro access token refreshed")
        return self.access_token

    def get_loads(self, skip: int = 0, limit: int = 100, status: Optional[str] = None) -> List[dict]:
        """
        Fetch one page of loads.

        Returns:
            List of vendor load dicts (possibly empty)

        Raises:
            VendorUnavailable: On network errors or non-2xx responses
        """
        params = {'skip': skip, 'limit': limit}
        if status:
            params['status'] = status
        body = self._request('GET', '/loads', params=params)
        loads = body.get('data') or []
        logger.info(f"Fetched {len(loads)} loads from PortPro (skip={skip}, limit={limit})")
        return loads

    def get_load(self, reference_or_id: str) -> Optional[dict]:
        body = self._request('GET', f'/loads/{reference_or_id}')
        return body.get('data') or None
