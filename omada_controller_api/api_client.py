import math
import re
import threading
import warnings
from urllib.parse import urlencode, urlsplit

import requests
import urllib3

from typing import List, Dict, Any, Optional

from .models.site import OmadaSite
from .logging import get_logger, log_api_response
from .exceptions import (
    OmadaAuthenticationError,
    OmadaAPIError,
    OmadaConnectivityError,
    OmadaMalformedResponseError,
)

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_REQUEST_TIMEOUT = 30

# Envelope codes the controller returns when the login session is gone.
AUTH_ERROR_CODES = frozenset({-1200})


class OmadaController:
    """
    Client for the Omada SDN Controller web API (v2).

    This class owns the HTTP session to one controller. It discovers the
    controller ID, logs in to obtain the CSRF token and session cookie, and
    funnels every authenticated call through :meth:`send_request`, which
    attaches the credentials and unwraps the ``{errorCode, result}`` envelope.

    Note:
        The v2 web API is the one the controller's own UI uses. It is not a
        published interface, and payload shapes can change between controller
        releases.
    """

    def __init__(
        self,
        server,
        username,
        password,
        ssl=True,
        verify_ssl=True,
        request_timeout=DEFAULT_REQUEST_TIMEOUT,
        page_size=DEFAULT_PAGE_SIZE,
    ):
        """
        Initialize the Omada Controller client.

        No request is made here; discovery and login happen lazily on the
        first call that needs them.

        Args:
            server: Host name (optionally with ``:port``) of the controller.
                A leading ``http://`` or ``https://`` is accepted and overrides `ssl`.
            username: Username of a local controller account.
            password: Password for that account. Never logged.
            ssl: Whether to use HTTPS. Defaults to True.
            verify_ssl: Whether to verify TLS certificates for this session. Can be:
                       - True: Verify certificates (default)
                       - False: Disable verification for this controller only
                       - str: Path to a CA bundle file or directory
            request_timeout: Timeout in seconds applied to every HTTP request.
            page_size: Rows requested per page by :meth:`enumerate_pages`.
        """
        if request_timeout is None or request_timeout <= 0:
            raise ValueError("request_timeout must be a positive number of seconds")
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        server = server.rstrip("/")
        if server.startswith(("http://", "https://")):
            self.base_url = server
        else:
            self.base_url = f"{'https' if ssl else 'http'}://{server}"

        logger.debug(f"Initializing OmadaController with URL: {self.base_url}")
        self.session = requests.Session()
        self.verify_ssl = verify_ssl
        self.request_timeout = request_timeout
        self.page_size = page_size

        self._username = username
        self._password = password

        self.controller_id: Optional[str] = None
        self.token: Optional[str] = None
        self.cookies: Optional[str] = None

        self._auth_lock = threading.Lock()

        if not verify_ssl:
            logger.warning(
                f"SSL certificate verification is disabled for {self.base_url}. "
                "This is not recommended for production use."
            )
            # Silence urllib3's per-request warning for this host only.
            host = urlsplit(self.base_url).hostname or ""
            warnings.filterwarnings(
                "ignore",
                message=rf"Unverified HTTPS request is being made to host '{re.escape(host)}'",
                category=urllib3.exceptions.InsecureRequestWarning,
            )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Drop the login session and close the underlying HTTP connection pool."""
        self.invalidate_session()
        self.session.close()
        logger.debug(f"Closed session to {self.base_url}")

    def _execute(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json_payload: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """Send one HTTP request, mapping transport failures to OmadaConnectivityError."""
        request_kwargs = {
            "verify": self.verify_ssl,
            "timeout": self.request_timeout,
        }
        if headers:
            request_kwargs["headers"] = headers
        if json_payload is not None:
            request_kwargs["json"] = json_payload

        try:
            response = self.session.request(method, url, **request_kwargs)
        except requests.exceptions.RequestException as e:
            error_msg = f"API {method} request to {url} failed: {e}"
            logger.error(error_msg)
            raise OmadaConnectivityError(error_msg) from e

        logger.debug(
            f"API {method} request to {url} returned status {response.status_code}")
        return response

    def get_info(self) -> Dict[str, Any]:
        """
        Fetch the controller's unauthenticated info document (``/api/info``).

        Returns:
            Dict[str, Any]: The envelope's ``result``, which carries ``omadacId``
            along with the controller version.

        Raises:
            OmadaConnectivityError: If the controller cannot be reached or the
                                    response is not a valid envelope.
        """
        url = f"{self.base_url}/api/info"
        response = self._execute("GET", url, headers={"Accept": "application/json"})
        try:
            body = response.json()
        except ValueError as e:
            raise OmadaConnectivityError(
                f"Controller info at {url} is not JSON (status {response.status_code})"
            ) from e
        log_api_response(logger, url, body, response.status_code)

        if not isinstance(body, dict) or not isinstance(body.get("result"), dict):
            raise OmadaConnectivityError(
                f"Unexpected controller info format from {url}: {response.text[:300]}")
        return body["result"]

    def resolve_controller_id(self) -> str:
        """
        Return the controller ID, discovering it on first use.

        The ID is cached for the lifetime of this client and never re-fetched.

        Returns:
            str: The ``omadacId`` used as the first path segment of API URLs.

        Raises:
            OmadaConnectivityError: If discovery fails or the info document
                                    has no ``omadacId``.
        """
        if self.controller_id is None:
            info = self.get_info()
            controller_id = info.get("omadacId")
            if not controller_id:
                raise OmadaConnectivityError(
                    f"Controller at {self.base_url} did not report an omadacId")
            self.controller_id = controller_id
            logger.info(f"Resolved Omada controller ID: {controller_id}")
        return self.controller_id

    def ensure_authenticated(self) -> str:
        """
        Return the CSRF token, logging in first if no session is held.

        Concurrent callers wait for an in-flight login instead of starting
        their own.

        Returns:
            str: The token sent as the ``Csrf-Token`` header.

        Raises:
            OmadaConnectivityError: If the controller cannot be reached.
            OmadaAuthenticationError: If the login is rejected or its response is malformed.
        """
        token = self.token
        if token is not None:
            return token
        with self._auth_lock:
            if self.token is None:
                self._login()
            return self.token

    def invalidate_session(self):
        """Forget the token and cookie so the next call logs in again."""
        with self._auth_lock:
            self.token = None
            self.cookies = None

    def _login(self):
        url = self.get_url("/api/v2/login")
        logger.debug(f"Attempting authentication with username: {self._username}")

        response = self._execute(
            "POST",
            url,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            json_payload={"username": self._username, "password": self._password},
        )

        try:
            body = response.json()
        except ValueError as e:
            error_msg = f"Login response from {url} is not JSON (status {response.status_code})"
            logger.error(error_msg)
            raise OmadaAuthenticationError(error_msg) from e

        if not isinstance(body, dict):
            raise OmadaAuthenticationError(f"Unexpected login response format from {url}")

        error_code = body.get("errorCode")
        if error_code != 0:
            error_msg = f"Login rejected by controller (errorCode={error_code}): {body.get('msg', '')}"
            logger.warning(error_msg)
            raise OmadaAuthenticationError(error_msg)

        result = body.get("result")
        token = result.get("token") if isinstance(result, dict) else None
        if not token:
            raise OmadaAuthenticationError(f"Login response from {url} carries no token")

        self.token = token
        self.cookies = self._extract_session_cookie(response)
        if self.cookies is None:
            logger.warning("Login response did not set a session cookie.")
        logger.info("Successfully connected to Omada controller.")

    @staticmethod
    def _extract_session_cookie(response: requests.Response) -> Optional[str]:
        """Build a ``Cookie`` header value from the login response."""
        pairs = [f"{cookie.name}={cookie.value}" for cookie in response.cookies]
        if pairs:
            return "; ".join(pairs)
        set_cookie = response.headers.get("Set-Cookie")
        if set_cookie:
            return set_cookie.split(";", 1)[0].strip()
        return None

    def get_url(self, path: str, query_parameters: Optional[Dict[str, Any]] = None) -> str:
        """
        Build an absolute URL under the controller ID.

        Args:
            path: API path such as ``/api/v2/users/current``. A leading slash is added if missing.
            query_parameters: Optional query string parameters.

        Returns:
            str: ``{base_url}/{controller_id}{path}[?query]``.

        Raises:
            OmadaConnectivityError: If the controller ID cannot be resolved.
        """
        if not path.startswith("/"):
            path = "/" + path

        controller_id = self.resolve_controller_id()
        url = f"{self.base_url}/{controller_id}{path}"

        if query_parameters:
            url = f"{url}?{urlencode(query_parameters)}"
        return url

    def _send_authenticated(
        self, method: str, url: str, json_payload: Optional[Dict[str, Any]]
    ) -> requests.Response:
        headers = {
            "Accept": "application/json",
            "Csrf-Token": self.ensure_authenticated(),
        }
        if self.cookies:
            headers["Cookie"] = self.cookies
        if json_payload is not None:
            headers["Content-Type"] = "application/json"
        return self._execute(method, url, headers=headers, json_payload=json_payload)

    @staticmethod
    def _is_auth_failure(response: requests.Response) -> bool:
        if response.status_code == 401:
            return True
        try:
            body = response.json()
        except ValueError:
            return False
        return isinstance(body, dict) and body.get("errorCode") in AUTH_ERROR_CODES

    def _process_api_response(self, response: requests.Response, path: str) -> Any:
        """
        Validate the response envelope and return its ``result``.

        Args:
            response: Response from an authenticated call.
            path: API path that was called, used in error messages.

        Returns:
            The envelope's ``result`` (object, array, or None).

        Raises:
            OmadaAPIError: If the envelope's errorCode is not 0 or the HTTP status is an error.
            OmadaMalformedResponseError: If the body is not a JSON envelope.
        """
        if response.status_code == 401:
            raise OmadaAPIError(401, path, response.text)

        try:
            body = response.json()
        except ValueError as e:
            error_msg = f"Failed to parse API response from '{path}' (status {response.status_code}): {e}"
            logger.error(error_msg)
            raise OmadaMalformedResponseError(error_msg) from e

        log_api_response(logger, path, body, response.status_code)

        if not isinstance(body, dict) or "errorCode" not in body:
            error_msg = f"Unexpected API response format for '{path}'"
            logger.warning(error_msg)
            raise OmadaMalformedResponseError(error_msg)

        error_code = body["errorCode"]
        if error_code != 0:
            raise OmadaAPIError(error_code, path, response.text)
        if not response.ok:
            raise OmadaAPIError(response.status_code, path, response.text)
        return body.get("result")

    def send_request(
        self,
        method: str,
        path: str,
        query_parameters: Optional[Dict[str, Any]] = None,
        json_payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an authenticated API request and return the unwrapped result.

        Attaches ``Accept``, ``Csrf-Token`` and ``Cookie`` headers. If the
        controller answers with HTTP 401 or a session-expired errorCode, the
        session is renewed once and the call is retried once; a second
        failure is raised.

        Args:
            method: HTTP method (e.g., 'GET', 'POST').
            path: API path relative to the controller ID, e.g. ``/api/v2/users/current``.
            query_parameters: Optional query string parameters.
            json_payload: Optional dictionary to send as a JSON body.

        Returns:
            The envelope's ``result`` field.

        Raises:
            OmadaConnectivityError: On transport failure. Not retried.
            OmadaAuthenticationError: If logging in (or back in) fails.
            OmadaAPIError: If the controller returns a non-zero errorCode.
            OmadaMalformedResponseError: If the response is not a JSON envelope.
        """
        url = self.get_url(path, query_parameters)
        response = self._send_authenticated(method, url, json_payload)

        if self._is_auth_failure(response):
            logger.warning(
                f"Session rejected by {path} (status {response.status_code}). "
                "Re-authenticating and retrying once."
            )
            self.invalidate_session()
            response = self._send_authenticated(method, url, json_payload)

        return self._process_api_response(response, path)

    def enumerate_pages(self, path: str) -> List[Any]:
        """
        Fetch every page of a paginated list endpoint.

        ``totalRows`` is read from the first page only; the number of pages
        is ``ceil(totalRows / page_size)`` with a minimum of one.

        Args:
            path: API path of the list endpoint.

        Returns:
            List[Any]: The concatenated ``data`` arrays in page order.

        Raises:
            OmadaMalformedResponseError: If a page lacks ``data`` or the first lacks a usable ``totalRows``.
            OmadaAPIError, OmadaConnectivityError, OmadaAuthenticationError: As for :meth:`send_request`.
        """
        per_page = self.page_size
        results: List[Any] = []

        page = 1
        max_page = 1
        while page <= max_page:
            result = self.send_request(
                "GET", path, {"currentPage": page, "currentPageSize": per_page})

            if not isinstance(result, dict) or not isinstance(result.get("data"), list):
                raise OmadaMalformedResponseError(
                    f"Page {page} of '{path}' has no data list")

            if page == 1:
                try:
                    total_rows = int(result.get("totalRows", 0))
                except (TypeError, ValueError) as e:
                    raise OmadaMalformedResponseError(
                        f"Invalid totalRows in '{path}': {result.get('totalRows')!r}") from e
                max_page = max(1, math.ceil(total_rows / per_page))
                logger.debug(f"Enumerating {path}: totalRows={total_rows} pages={max_page}")

            results.extend(result["data"])
            page += 1

        return results

    def get_current_user(self) -> Dict[str, Any]:
        """
        Get the account the session is logged in as.

        Returns:
            Dict[str, Any]: The user record, including ``privilege.sites``.
        """
        return self.send_request("GET", "/api/v2/users/current")

    def get_sites(self) -> List[OmadaSite]:
        """
        Get the sites the logged-in user has privileges on.

        The list is derived from the current user on every call, so sites
        added or removed on the controller show up on the next call.

        Returns:
            List[OmadaSite]: One site handle per privileged site.

        Raises:
            OmadaMalformedResponseError: If the user record has no site list,
                                         or it is not a list.
        """
        current_user = self.get_current_user()
        try:
            site_entries = current_user["privilege"]["sites"]
        except (KeyError, TypeError) as e:
            raise OmadaMalformedResponseError(
                "Current user record has no privilege.sites list") from e
        if not isinstance(site_entries, list):
            raise OmadaMalformedResponseError(
                f"Current user privilege.sites is not a list: {site_entries!r}")

        sites = []
        for entry in site_entries:
            key = entry.get("key") if isinstance(entry, dict) else None
            if not key:
                logger.warning(f"Skipping site entry without key: {entry!r}")
                continue
            sites.append(OmadaSite(key=key, name=entry.get("name", key), controller=self))
        logger.debug(f"Current user has access to {len(sites)} site(s)")
        return sites
