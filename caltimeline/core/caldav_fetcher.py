"""CalDAV fetch capability for calendar sources.

Each configured calendar gets a ``CalDAVFetcher`` that issues one
``calendar-query`` REPORT per query window over a shared httpx client and hands
the returned iCalendar data to ``read_components``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional

import httpx
import lxml.etree as etree

from ..calendar.ics_reader import read_components
from ..exceptions import SourceFetchError
from ..models import CalendarSource, QueryWindow, RawComponent
from .config_loader import AppConfig, CalendarConfig
from .http_client import build_timeout, request_headers

logger = logging.getLogger(__name__)

DAV_NS = "DAV:"
CALDAV_NS = "urn:ietf:params:xml:ns:caldav"
NSMAP = {"D": DAV_NS, "C": CALDAV_NS}

CALDAV_TIME_FORMAT = "%Y%m%dT%H%M%SZ"

# VEVENT properties requested from the server
REQUESTED_PROPERTIES = (
    "UID",
    "SUMMARY",
    "DESCRIPTION",
    "LOCATION",
    "DTSTART",
    "DTEND",
    "DURATION",
    "RRULE",
    "EXDATE",
    "RECURRENCE-ID",
)


def _dav(tag: str) -> str:
    return f"{{{DAV_NS}}}{tag}"


def _caldav(tag: str) -> str:
    return f"{{{CALDAV_NS}}}{tag}"


def build_calendar_query(window: QueryWindow) -> bytes:
    """Build the ``calendar-query`` REPORT body for VEVENTs overlapping ``window``."""
    root = etree.Element(_caldav("calendar-query"), nsmap=NSMAP)
    prop = etree.SubElement(root, _dav("prop"))
    etree.SubElement(prop, _dav("getetag"))
    calendar_data = etree.SubElement(prop, _caldav("calendar-data"))
    vcalendar = etree.SubElement(calendar_data, _caldav("comp"), name="VCALENDAR")
    etree.SubElement(vcalendar, _caldav("prop"), name="VERSION")
    vevent = etree.SubElement(vcalendar, _caldav("comp"), name="VEVENT")
    for name in REQUESTED_PROPERTIES:
        etree.SubElement(vevent, _caldav("prop"), name=name)

    filter_el = etree.SubElement(root, _caldav("filter"))
    cal_filter = etree.SubElement(filter_el, _caldav("comp-filter"), name="VCALENDAR")
    event_filter = etree.SubElement(cal_filter, _caldav("comp-filter"), name="VEVENT")
    etree.SubElement(
        event_filter,
        _caldav("time-range"),
        start=_format_utc(window.start),
        end=_format_utc(window.end),
    )
    return etree.tostring(root, xml_declaration=True, encoding="utf-8")


def _format_utc(instant: datetime) -> str:
    return instant.astimezone(UTC).strftime(CALDAV_TIME_FORMAT)


def extract_calendar_data(body: bytes) -> list[str]:
    """Return every ``calendar-data`` payload of a multistatus response.

    Raises:
        etree.XMLSyntaxError: If the body is not well-formed XML
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    root = etree.fromstring(body, parser=parser)
    payloads = []
    for element in root.iter(_caldav("calendar-data")):
        if element.text and element.text.strip():
            payloads.append(element.text)
    return payloads


class CalDAVFetcher:
    """Fetch capability for one CalDAV calendar.

    Calling the fetcher with a query window returns that calendar's raw VEVENT
    components. Every failure is raised as ``SourceFetchError`` naming the
    calendar.
    """

    def __init__(
        self,
        calendar: CalendarConfig,
        client: httpx.AsyncClient,
        timeout: float = 30.0,
        password: Optional[str] = None,
    ):
        """Initialize fetcher.

        Args:
            calendar: Calendar configuration
            client: Shared HTTP client
            timeout: Per-request timeout in seconds
            password: Basic auth password; read from the password file when omitted
        """
        self.calendar = calendar
        self.client = client
        self.timeout = timeout
        self._auth = httpx.BasicAuth(calendar.user_id, password or calendar.read_password())

    async def __call__(self, window: QueryWindow) -> list[RawComponent]:
        """Fetch the VEVENTs overlapping ``window``.

        Raises:
            SourceFetchError: On transport errors, unexpected status or malformed XML
        """
        name = self.calendar.name
        headers = {
            "Depth": "1",
            "Content-Type": "application/xml; charset=utf-8",
            **request_headers(),
        }
        logger.debug("REPORT %s for calendar %r", self.calendar.url, name)

        try:
            response = await self.client.request(
                "REPORT",
                self.calendar.url,
                content=build_calendar_query(window),
                headers=headers,
                auth=self._auth,
                timeout=build_timeout(self.timeout),
            )
        except httpx.TimeoutException as exc:
            raise SourceFetchError(name, f"request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise SourceFetchError(name, f"request failed: {exc}") from exc

        if response.status_code not in (200, 207):
            raise SourceFetchError(name, f"unexpected HTTP status {response.status_code}")

        try:
            payloads = extract_calendar_data(response.content)
        except etree.XMLSyntaxError as exc:
            raise SourceFetchError(name, f"malformed multistatus response: {exc}") from exc

        components: list[RawComponent] = []
        for payload in payloads:
            try:
                components.extend(read_components(payload))
            except ValueError as exc:
                logger.warning("Skipping unparsable calendar object in %s: %s", name, exc)

        logger.debug(
            "Calendar %r returned %d objects, %d components", name, len(payloads), len(components)
        )
        return components


def build_sources(config: AppConfig, client: httpx.AsyncClient) -> list[CalendarSource]:
    """Create one CalendarSource per configured calendar.

    Raises:
        ConfigError: If a calendar's password file cannot be read
    """
    zone = config.zone
    sources = []
    for calendar in config.calendars:
        fetcher = CalDAVFetcher(calendar, client, timeout=config.request_timeout)
        sources.append(CalendarSource(calendar.name, calendar.color, zone, fetcher))
    logger.info("Configured %d calendar sources in %s", len(sources), config.time_zone)
    return sources
