"""CAS 2.0 client - ticket validation against the identity provider."""

import logging
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlencode
from xml.etree import ElementTree

import httpx

logger = logging.getLogger(__name__)

CAS_NAMESPACE = "http://www.yale.edu/tp/cas"
_NS = {"cas": CAS_NAMESPACE}


class CasError(Exception):
    """Base class for ticket validation failures."""

    pass


class CasProviderError(CasError):
    """The CAS server could not be reached or answered with garbage."""

    pass


class CasAuthenticationError(CasError):
    """The CAS server explicitly rejected the ticket."""

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}" if code else message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class CasIdentity:
    """Attributes asserted by the CAS server for a validated ticket."""

    user: str
    full_name: str
    email: str
    department_number: str
    business_category: str


def _child_text(parent: Optional[ElementTree.Element], tag: str) -> str:
    if parent is None:
        return ""
    elem = parent.find(f"cas:{tag}", _NS)
    if elem is None or elem.text is None:
        return ""
    return elem.text


def parse_service_response(body: Union[bytes, str]) -> CasIdentity:
    """
    Parse a CAS 2.0 serviceValidate response.

    Raises:
        CasAuthenticationError: For an authenticationFailure branch
        CasProviderError: For malformed XML, an unexpected document or a
            success branch without an email attribute
    """
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as e:
        raise CasProviderError(f"Error while parsing CAS response: {e}")

    if root.tag != f"{{{CAS_NAMESPACE}}}serviceResponse":
        raise CasProviderError(f"Unexpected CAS response root element: {root.tag}")

    failure = root.find("cas:authenticationFailure", _NS)
    if failure is not None:
        raise CasAuthenticationError(
            failure.get("code", ""), (failure.text or "").strip()
        )

    success = root.find("cas:authenticationSuccess", _NS)
    if success is None:
        raise CasProviderError("CAS response has neither success nor failure")

    attributes = success.find("cas:attributes", _NS)
    # Users are keyed by email; an identity without one cannot be matched.
    email = _child_text(attributes, "email").strip()
    if not email:
        raise CasProviderError("CAS response carries no email attribute")

    return CasIdentity(
        user=_child_text(success, "user"),
        full_name=_child_text(attributes, "cn"),
        email=email,
        department_number=_child_text(attributes, "departmentNumber"),
        business_category=_child_text(attributes, "businessCategory"),
    )


class CasClient:
    """
    Client for a CAS server rooted at ``base_url`` (e.g. https://cas.example/cas).

    One GET per validation, no retries and no caching: tickets are single use.
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 6.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=False)

    def login_url(self, service_url: str) -> str:
        return f"{self.base_url}/login?{urlencode({'service': service_url})}"

    def validate(self, ticket: str, service_url: str) -> CasIdentity:
        """
        Validate a service ticket.

        Args:
            ticket: Ticket from the callback query string
            service_url: Service URL the ticket was issued for

        Returns:
            CasIdentity with the asserted attributes

        Raises:
            CasAuthenticationError: Ticket rejected by the server
            CasProviderError: Transport error, non-200 status or bad XML
        """
        if not ticket:
            raise ValueError("ticket must not be empty")

        params = {"service": service_url, "ticket": ticket}
        try:
            response = self._http.get(
                f"{self.base_url}/serviceValidate", params=params, timeout=self.timeout
            )
        except httpx.TimeoutException:
            raise CasProviderError("Timeout while validating CAS ticket")
        except httpx.HTTPError as e:
            raise CasProviderError(f"Error while validating CAS ticket: {e}")

        if response.status_code != 200:
            raise CasProviderError(
                "Error while validating CAS ticket, got a non 200 status code: "
                f"{response.status_code}"
            )

        identity = parse_service_response(response.content)
        logger.info(f"CAS ticket validated for user: {identity.user}")
        return identity

    def close(self) -> None:
        if self._owns_client:
            self._http.close()
