"""Forge REST API client implementation."""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import requests
from loguru import logger
from pydantic import BaseModel

from .exceptions import (
    ForgeAPIError,
    ForgeAuthenticationError,
    ForgeConflictError,
    ForgeDecodeError,
    ForgeNotFoundError,
    ForgeRateLimitError,
    ForgeServerError,
    ForgeTransportError,
)
from .rate_limiter import RateLimiter

USER_AGENT = 'forge-migrate/0.1.0'
BODY_SNIPPET_LENGTH = 300


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def body_snippet(response: requests.Response) -> str:
    """Return the first characters of a response body for diagnostics."""
    try:
        text = response.text or ''
    except (AttributeError, ValueError):
        return ''
    return text[:BODY_SNIPPET_LENGTH]


class ForgeHTTPClient:
    """Thin requests.Session wrapper shared by all forge adapters."""

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[Tuple[str, str]] = None,
        timeout: float = 30,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """Initialize forge HTTP client.

        Args:
            base_url: API root, e.g. https://gitea.example.com/api/v1
            headers: Extra headers, usually the authentication header
            auth: Basic auth credentials
            timeout: Request timeout in seconds
            rate_limiter: Optional shared rate limiter
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.rate_limiter = rate_limiter
        self.session = requests.Session()

        self.session.headers.update(
            {'Content-Type': 'application/json', 'User-Agent': USER_AGENT}
        )
        if headers:
            self.session.headers.update(headers)
        if auth:
            self.session.auth = auth

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _handle_response(self, response: requests.Response, url: str) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response
            url: Requested URL, used for error context

        Returns:
            Standardized API response

        Raises:
            ForgeAPIError: For various API errors
        """
        headers = {k.lower(): v for k, v in dict(response.headers).items()}
        status = response.status_code

        if status == 429:
            try:
                retry_after = int(headers.get('retry-after', 60))
            except ValueError:
                retry_after = 60
            raise ForgeRateLimitError(
                f'Rate limit exceeded. Retry after {retry_after} seconds',
                retry_after=retry_after,
                status_code=status,
                url=url,
                body=body_snippet(response),
            )

        if status in (401, 403):
            raise ForgeAuthenticationError(
                f'Authentication failed (HTTP {status})',
                status_code=status,
                url=url,
                body=body_snippet(response),
            )

        if status == 404:
            raise ForgeNotFoundError(
                'Resource not found',
                status_code=status,
                url=url,
                body=body_snippet(response),
            )

        if status >= 400:
            snippet = body_snippet(response)
            message = f'HTTP {status}'
            try:
                error_data = response.json()
                if isinstance(error_data, dict) and error_data.get('message'):
                    message = f'HTTP {status}: {error_data["message"]}'
            except ValueError:
                if snippet:
                    message = f'HTTP {status}: {snippet}'

            if status == 409:
                error_class = ForgeConflictError
            elif status >= 500:
                error_class = ForgeServerError
            else:
                error_class = ForgeAPIError
            raise error_class(
                f'API request failed: {message}',
                status_code=status,
                url=url,
                body=snippet,
            )

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        return APIResponse(
            status_code=status,
            data=data,
            headers=headers,
            success=200 <= status < 300,
        )

    def _request(self, method: str, endpoint: str, **kwargs) -> APIResponse:
        url = self._build_url(endpoint)
        timeout = kwargs.pop('timeout', None) or self.timeout
        if self.rate_limiter is not None:
            self.rate_limiter.acquire()

        send = getattr(self.session, method)
        try:
            response = send(url, timeout=timeout, **kwargs)
        except requests.Timeout as e:
            logger.warning(f'Timeout during {method.upper()} {url}')
            raise ForgeTransportError(f'Request timed out: {e}', url=url)
        except requests.RequestException as e:
            logger.error(f'Network error during {method.upper()} {url}: {e}')
            raise ForgeTransportError(f'Network error: {e}', url=url)

        return self._handle_response(response, url)

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request.

        Args:
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        return self._request('get', endpoint, params=params, **kwargs)

    def post(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make POST request.

        Args:
            endpoint: API endpoint
            data: Request body data
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        return self._request('post', endpoint, json=data, **kwargs)

    @staticmethod
    def _has_next_page(response: APIResponse, page: int) -> bool:
        """Interpret the forge's explicit pagination signals.

        Returns True when the forge says there is another page or says nothing.
        """
        link = response.headers.get('link')
        if link is not None:
            rels = {
                item.get('rel') for item in requests.utils.parse_header_links(link)
            }
            return 'next' in rels

        if 'x-next-page' in response.headers:
            return bool(response.headers['x-next-page'].strip())

        total_pages = response.headers.get('x-total-pages')
        if total_pages:
            try:
                return page < int(total_pages)
            except ValueError:
                pass

        return True

    def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
        page_size_param: str = 'per_page',
    ) -> List[Any]:
        """Get all pages of a paginated endpoint.

        Stops on a short page or an explicit "no next page" signal.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page
            page_size_param: Name of the page size query parameter

        Returns:
            List of all items from all pages

        Raises:
            ForgeDecodeError: If a page is not a JSON list
        """
        all_items: List[Any] = []
        page = 1
        params = dict(params or {})
        params[page_size_param] = per_page

        while True:
            response = self.get(endpoint, params={**params, 'page': page})

            items = response.data
            if items is None:
                items = []
            if not isinstance(items, list):
                raise ForgeDecodeError(
                    f'Expected a JSON list from {endpoint} page {page}',
                    status_code=response.status_code,
                    url=self._build_url(endpoint),
                    body=str(items)[:BODY_SNIPPET_LENGTH],
                )

            all_items.extend(items)

            if len(items) < per_page:
                break

            if not self._has_next_page(response, page):
                break

            page += 1

        logger.debug(
            f'Retrieved {len(all_items)} items from {endpoint} in {page} page(s)'
        )
        return all_items

    def test_connection(self, endpoint: str = '/user') -> bool:
        """Test connection and credentials.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            return self.get(endpoint).success
        except ForgeAPIError as e:
            logger.error(f'Connection test failed: {e}')
            return False

    def close(self):
        """Close the client session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
