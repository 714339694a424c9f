#!/usr/bin/env python3
"""
Relay Bid Delivery Monitor

Listens to the beacon node's payload_attributes event stream and, for every new
slot, checks whether the relays of interest that the previous slot's proposer
was registered with actually received a builder bid for that slot's block.

Flow per slot transition:
- Resolve the previous proposer's pubkey from the local beacon node
- Check which relays hold a validator registration for that pubkey
- Wait briefly, then pull bid traces for the block hash from every relay
- Report relays of interest that were registered but never saw a bid

Usage: python relay_bid_monitor.py [--beacon-client URL] [--relays a,b] [--relays-of-interest a,b]
"""

import argparse
import asyncio
import enum
import functools
import json
import logging
import math
import os
import sys
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

import aiohttp
import requests
from dotenv import load_dotenv
from fake_useragent import UserAgent

LOG_FILE = "relay_bid_monitor.log"

logger = logging.getLogger(__name__)

DEFAULT_BEACON_API_URL = "http://localhost:5052"

DEFAULT_RELAYS = [
    "https://boost-relay.flashbots.net",
    "https://bloxroute.regulated.blxrbdn.com",
    "https://bloxroute.max-profit.blxrbdn.com",
    "https://relay.ultrasound.money",
    "https://agnostic-relay.net",
    "https://builder-relay-mainnet.blocknative.com",
    "https://aestus.live",
]

DEFAULT_RELAYS_OF_INTEREST = [
    "https://bloxroute.regulated.blxrbdn.com",
    "https://bloxroute.max-profit.blxrbdn.com",
]

# Relay endpoints
REGISTRATION_PATH = "/relay/v1/data/validator_registration"
BIDTRACE_PATH = "/relay/v1/data/bidtraces/builder_blocks_received"

# Some data endpoints don't have submissions available immediately
DEFAULT_SETTLE_DELAY = 0.5
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_MAX_CONCURRENCY = 8
RECONNECT_DELAY = 2.0

PAYLOAD_ATTRIBUTES_TOPIC = "payload_attributes"


class MonitorError(Exception):
    """Base class for monitor errors."""


class MalformedEvent(MonitorError):
    """Raised when a beacon event cannot be decoded into a SlotEvent."""


class ResolutionError(MonitorError):
    """Raised when a validator index cannot be resolved to a pubkey."""


class RelayQueryError(MonitorError):
    """Raised for a single failed relay query. Never leaves the relay fan-out."""

    def __init__(self, relay: str, reason: str):
        super().__init__(f"{relay}: {reason}")
        self.relay = relay
        self.reason = reason


class SubscriptionError(MonitorError):
    """Raised when the beacon event subscription cannot be established."""


class RelayOutcome(enum.Enum):
    CONFIRMED = "confirmed"
    NOT_FOUND = "not_found"
    QUERY_FAILED = "query_failed"


@dataclass(frozen=True)
class SlotEvent:
    proposal_slot: int
    parent_block_hash: str
    proposer_index: str


# Sentinel held before the first event arrives
GENESIS_EVENT = SlotEvent(proposal_slot=0, parent_block_hash="", proposer_index="")


@dataclass(frozen=True)
class SlotTransition:
    """A newly accepted event together with the event accepted just before it."""
    previous: SlotEvent
    current: SlotEvent

    @property
    def should_evaluate(self) -> bool:
        return self.previous.proposer_index != ""


@dataclass
class EngineState:
    last_accepted: SlotEvent = GENESIS_EVENT


@dataclass(frozen=True)
class RelayCatalog:
    relays: Tuple[str, ...]
    of_interest: FrozenSet[str]

    def unaudited_interest(self) -> List[str]:
        """Relays of interest that are not polled and so can never be audited."""
        return sorted(self.of_interest.difference(self.relays))


@dataclass
class SubmissionAudit:
    builder_pubkey: str = ""
    outcomes: Dict[str, RelayOutcome] = field(default_factory=dict)

    def submitted(self, relay: str) -> bool:
        return self.outcomes.get(relay) is RelayOutcome.CONFIRMED

    @property
    def submitted_relays(self) -> List[str]:
        return [relay for relay, outcome in self.outcomes.items() if outcome is RelayOutcome.CONFIRMED]

    @property
    def failed_relays(self) -> List[str]:
        return [relay for relay, outcome in self.outcomes.items() if outcome is RelayOutcome.QUERY_FAILED]


@dataclass(frozen=True)
class GapReport:
    slot: int
    block_hash: str
    builder_pubkey: str
    missing: Tuple[Tuple[str, str], ...]  # (relay, bid trace url)

    @property
    def missing_relays(self) -> List[str]:
        return [relay for relay, _ in self.missing]

    def format(self) -> str:
        lines = [
            f"Bids not received for slot {self.slot}",
            f"BlockHash: {self.block_hash}",
            f"Builder pubkey: {self.builder_pubkey}",
            "Relays not received: ",
        ]
        for relay, url in self.missing:
            lines.append(relay)
            lines.append(url)
        return "\n".join(lines) + "\n"


def normalize_relay_url(url: str) -> str:
    return url.strip().rstrip("/")


def parse_relay_list(value: Optional[str], default: Iterable[str]) -> List[str]:
    """Split a comma separated relay list, falling back to the default when unset."""
    if not value or not value.strip():
        return [normalize_relay_url(relay) for relay in default]

    relays = []
    for relay in value.split(","):
        relay = normalize_relay_url(relay)
        if relay and relay not in relays:
            relays.append(relay)
    return relays


def registration_url(relay: str, pubkey: str) -> str:
    return f"{relay}{REGISTRATION_PATH}?pubkey={pubkey}"


def bidtrace_url(relay: str, block_hash: str) -> str:
    return f"{relay}{BIDTRACE_PATH}?block_hash={block_hash}"


@functools.lru_cache(maxsize=1)
def _user_agents() -> UserAgent:
    return UserAgent()


def random_user_agent() -> str:
    return _user_agents().random


# ---------------------------------------------------------------------------
# Event normalization
# ---------------------------------------------------------------------------

def _parse_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise MalformedEvent(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise MalformedEvent(f"{name} must be an integer, got {value!r}")


def parse_payload_attributes(raw: Union[str, bytes, dict]) -> SlotEvent:
    """Decode one payload_attributes event into a SlotEvent.

    The beacon API encodes integers as strings, so both forms are accepted for
    proposal_slot and proposer_index.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedEvent(f"invalid JSON: {e}") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("data"), dict):
        raise MalformedEvent("missing data object")

    data = raw["data"]
    for key in ("proposal_slot", "parent_block_hash", "proposer_index"):
        if key not in data:
            raise MalformedEvent(f"missing field {key}")

    parent_block_hash = data["parent_block_hash"]
    if not isinstance(parent_block_hash, str):
        raise MalformedEvent(f"parent_block_hash must be a string, got {parent_block_hash!r}")

    proposer_index = data["proposer_index"]
    if isinstance(proposer_index, int) and not isinstance(proposer_index, bool):
        proposer_index = str(proposer_index)
    if not isinstance(proposer_index, str):
        raise MalformedEvent(f"proposer_index must be a string, got {proposer_index!r}")

    return SlotEvent(
        proposal_slot=_parse_int(data["proposal_slot"], "proposal_slot"),
        parent_block_hash=parent_block_hash,
        proposer_index=proposer_index,
    )


async def iter_sse_events(lines: AsyncIterator[bytes]) -> AsyncIterator[Tuple[str, str]]:
    """Yield (event, data) pairs from a text/event-stream line iterator."""
    event_name = ""
    data_lines: List[str] = []

    async for raw_line in lines:
        line = raw_line.decode("utf-8", errors="replace") if isinstance(raw_line, bytes) else raw_line
        line = line.rstrip("\r\n")

        if not line:
            if data_lines:
                yield event_name or "message", "\n".join(data_lines)
            event_name = ""
            data_lines = []
            continue

        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            event_name = value
        elif name == "data":
            data_lines.append(value)

    if data_lines:
        yield event_name or "message", "\n".join(data_lines)


# ---------------------------------------------------------------------------
# Slot deduplication
# ---------------------------------------------------------------------------

class SlotDeduplicator:
    """Turns the raw event stream into one transition per distinct slot.

    Evaluation always targets the proposer of the previously accepted event,
    because bid evidence for a slot only settles once the next slot starts.
    """

    def __init__(self, state: Optional[EngineState] = None):
        self.state = state or EngineState()

    @property
    def last_accepted(self) -> SlotEvent:
        return self.state.last_accepted

    def begin(self, event: SlotEvent) -> Optional[SlotTransition]:
        if event.proposal_slot == self.state.last_accepted.proposal_slot:
            return None
        return SlotTransition(previous=self.state.last_accepted, current=event)

    def commit(self, event: SlotEvent) -> None:
        if event.proposal_slot != self.state.last_accepted.proposal_slot:
            self.state.last_accepted = event


# ---------------------------------------------------------------------------
# Relay fan-out
# ---------------------------------------------------------------------------

async def _relay_get(session: aiohttp.ClientSession, relay: str, url: str,
                     headers: Optional[dict] = None, decode: bool = False) -> Tuple[int, object]:
    """GET a relay endpoint, returning (status, body). The body is only decoded for a 200."""
    try:
        async with session.get(url, headers=headers) as response:
            if not decode or response.status != 200:
                return response.status, None
            return response.status, await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        raise RelayQueryError(relay, f"{url}: {e!r}") from e


async def _fan_out(relays: Iterable[str], query: Callable, max_concurrency: int,
                   timeout: float, failed) -> List:
    """Run query(relay) for every relay with bounded concurrency, preserving order.

    Each relay gets its own deadline. A relay that misses it or raises
    RelayQueryError yields `failed` and the other relays carry on.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(relay: str):
        async with semaphore:
            try:
                return await asyncio.wait_for(query(relay), timeout)
            except asyncio.TimeoutError:
                logger.warning("Relay %s did not answer within %.1fs", relay, timeout)
            except RelayQueryError as e:
                logger.warning("Relay query failed for %s", e)
            return failed

    return await asyncio.gather(*(bounded(relay) for relay in relays))


class RegistrationResolver:
    """Resolves a proposer index to a pubkey and its relay registrations."""

    def __init__(self, session: aiohttp.ClientSession, beacon_api_url: str, catalog: RelayCatalog,
                 max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
                 user_agent: Callable[[], str] = random_user_agent,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.session = session
        self.beacon_api_url = beacon_api_url.rstrip("/")
        self.catalog = catalog
        self.max_concurrency = max_concurrency
        self.user_agent = user_agent
        self.request_timeout = request_timeout

    async def resolve_pubkey(self, validator_index: str) -> str:
        """Look up a validator pubkey. Returns "" when the beacon node has no record."""
        url = f"{self.beacon_api_url}/eth/v1/beacon/states/head/validators?id={validator_index}"

        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    raise ResolutionError(f"validator {validator_index}: HTTP {response.status}")
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ResolutionError(f"validator {validator_index}: {e!r}") from e

        try:
            records = payload["data"]
            if not records:
                return ""
            return records[0]["validator"]["pubkey"]
        except (KeyError, IndexError, TypeError) as e:
            raise ResolutionError(f"validator {validator_index}: unexpected response shape") from e

    async def _check_registration(self, relay: str, pubkey: str) -> RelayOutcome:
        url = registration_url(relay, pubkey)
        status, _ = await _relay_get(self.session, relay, url, headers={"User-Agent": self.user_agent()})

        if status == 200:
            return RelayOutcome.CONFIRMED
        if status == 429 or status >= 500:
            raise RelayQueryError(relay, f"{url}: HTTP {status}")
        logger.debug("No registration at %s: HTTP %d", relay, status)
        return RelayOutcome.NOT_FOUND

    async def check_registrations(self, pubkey: str) -> Dict[str, RelayOutcome]:
        outcomes = await _fan_out(
            self.catalog.relays,
            lambda relay: self._check_registration(relay, pubkey),
            self.max_concurrency,
            self.request_timeout,
            RelayOutcome.QUERY_FAILED,
        )
        return dict(zip(self.catalog.relays, outcomes))

    async def registered_relays(self, pubkey: str) -> List[str]:
        outcomes = await self.check_registrations(pubkey)
        return [relay for relay, outcome in outcomes.items() if outcome is RelayOutcome.CONFIRMED]


class SubmissionAuditor:
    """Collects bid trace evidence for a block hash across every relay."""

    def __init__(self, session: aiohttp.ClientSession, catalog: RelayCatalog,
                 max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.session = session
        self.catalog = catalog
        self.max_concurrency = max_concurrency
        self.request_timeout = request_timeout

    async def _query_relay(self, relay: str, block_hash: str) -> Tuple[RelayOutcome, str]:
        url = bidtrace_url(relay, block_hash)
        status, records = await _relay_get(self.session, relay, url, decode=True)

        if status != 200:
            raise RelayQueryError(relay, f"{url}: HTTP {status}")
        if not isinstance(records, list):
            raise RelayQueryError(relay, f"{url}: expected a list of bid traces")
        if not records:
            return RelayOutcome.NOT_FOUND, ""

        first = records[0]
        builder_pubkey = first.get("builder_pubkey", "") if isinstance(first, dict) else ""
        return RelayOutcome.CONFIRMED, builder_pubkey

    async def audit_submissions(self, block_hash: str) -> SubmissionAudit:
        results = await _fan_out(
            self.catalog.relays,
            lambda relay: self._query_relay(relay, block_hash),
            self.max_concurrency,
            self.request_timeout,
            (RelayOutcome.QUERY_FAILED, ""),
        )

        audit = SubmissionAudit()
        for relay, (outcome, builder_pubkey) in zip(self.catalog.relays, results):
            audit.outcomes[relay] = outcome
            # Last relay with a match wins, no attribution across builders
            if outcome is RelayOutcome.CONFIRMED:
                audit.builder_pubkey = builder_pubkey
        return audit


# ---------------------------------------------------------------------------
# Gap detection and reporting
# ---------------------------------------------------------------------------

def detect_gaps(registered: Iterable[str], catalog: RelayCatalog, audit: SubmissionAudit,
                slot: int, block_hash: str) -> Optional[GapReport]:
    """Return a report of registered relays of interest that never saw a bid."""
    interested = [relay for relay in registered if relay in catalog.of_interest]
    if not interested:
        return None

    missing = [relay for relay in interested if not audit.submitted(relay)]
    if not missing:
        return None

    return GapReport(
        slot=slot,
        block_hash=block_hash,
        builder_pubkey=audit.builder_pubkey,
        missing=tuple((relay, bidtrace_url(relay, block_hash)) for relay in missing),
    )


class ReportSink:
    """Writes gap reports as plain text lines."""

    def __init__(self, write: Callable[[str], None] = print):
        self.write = write

    def emit(self, report: GapReport) -> None:
        logger.warning("Bids not received for slot %d at %d relay(s): %s",
                       report.slot, len(report.missing), ", ".join(report.missing_relays))
        self.write(report.format())


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------

@dataclass
class MonitorConfig:
    beacon_api_url: str = DEFAULT_BEACON_API_URL
    relays: List[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))
    relays_of_interest: List[str] = field(default_factory=lambda: list(DEFAULT_RELAYS_OF_INTEREST))
    settle_delay: float = DEFAULT_SETTLE_DELAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    cycle_timeout: Optional[float] = None  # derived from the other timeouts when unset
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    @property
    def minimum_cycle_timeout(self) -> float:
        """Worst case for one cycle: beacon lookup, two relay fan-outs and the settle delay."""
        rounds = max(1, math.ceil(len(self.relays) / self.max_concurrency))
        return self.request_timeout * (1 + 2 * rounds) + self.settle_delay

    @property
    def cycle_deadline(self) -> float:
        if self.cycle_timeout is None:
            return self.minimum_cycle_timeout
        return self.cycle_timeout

    @property
    def catalog(self) -> RelayCatalog:
        return RelayCatalog(relays=tuple(self.relays), of_interest=frozenset(self.relays_of_interest))

    @property
    def events_url(self) -> str:
        return f"{self.beacon_api_url.rstrip('/')}/eth/v1/events?topics={PAYLOAD_ATTRIBUTES_TOPIC}"


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")
    if parsed < 0:
        raise ValueError(f"{name} must not be negative, got {value!r}")
    return parsed


def load_config(argv: Optional[List[str]] = None) -> MonitorConfig:
    """Build the monitor config from the environment (and .env), overridden by CLI flags."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Report relays that missed builder bids for registered proposers")
    parser.add_argument("--beacon-client", default=None, help="beacon client host")
    parser.add_argument("--relays", default=None, help="comma separated list of relay urls")
    parser.add_argument("--relays-of-interest", default=None, help="comma separated list of relay urls")
    args = parser.parse_args(argv)

    beacon_api_url = args.beacon_client or os.getenv("BEACON_API_URL") or DEFAULT_BEACON_API_URL
    relays = parse_relay_list(args.relays or os.getenv("RELAYS"), DEFAULT_RELAYS)
    relays_of_interest = parse_relay_list(
        args.relays_of_interest or os.getenv("RELAYS_OF_INTEREST"), DEFAULT_RELAYS_OF_INTEREST
    )

    max_concurrency = os.getenv("MAX_CONCURRENCY") or str(DEFAULT_MAX_CONCURRENCY)
    if not max_concurrency.isdigit() or int(max_concurrency) < 1:
        raise ValueError(f"MAX_CONCURRENCY must be a positive integer, got {max_concurrency!r}")
    max_concurrency = int(max_concurrency)

    config = MonitorConfig(
        beacon_api_url=normalize_relay_url(beacon_api_url),
        relays=relays,
        relays_of_interest=relays_of_interest,
        settle_delay=_env_float("SETTLE_DELAY_SECONDS", DEFAULT_SETTLE_DELAY),
        request_timeout=_env_float("REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT),
        cycle_timeout=_env_float("CYCLE_TIMEOUT_SECONDS", None),
        max_concurrency=max_concurrency,
    )

    # The cycle deadline must cover every per-relay deadline
    if config.cycle_timeout is not None and config.cycle_timeout < config.minimum_cycle_timeout:
        raise ValueError(
            f"CYCLE_TIMEOUT_SECONDS must be at least {config.minimum_cycle_timeout:.1f}, got {config.cycle_timeout}"
        )
    return config


def check_beacon_health(beacon_api_url: str) -> str:
    """Verify beacon API connectivity."""
    try:
        response = requests.get(f"{beacon_api_url}/eth/v1/node/health", timeout=10)
    except requests.RequestException as e:
        raise ConnectionError(f"Failed to connect to beacon API: {str(e)}")

    if response.status_code not in [200, 206]:
        raise ConnectionError(f"Beacon API health check failed: {response.status_code}")
    if response.status_code == 206:
        logger.info("Beacon node reports partial sync status (206) but is functional")
    logger.info("Connected to beacon API at %s", beacon_api_url)
    return beacon_api_url


class RelayBidMonitor:
    """Drives the per-slot audit from the payload_attributes event stream."""

    def __init__(self, config: MonitorConfig, session: aiohttp.ClientSession,
                 sink: Optional[ReportSink] = None,
                 user_agent: Callable[[], str] = random_user_agent):
        self.config = config
        self.catalog = config.catalog
        self.session = session
        self.sink = sink or ReportSink()
        self.deduplicator = SlotDeduplicator()
        self.resolver = RegistrationResolver(session, config.beacon_api_url, self.catalog,
                                             config.max_concurrency, user_agent, config.request_timeout)
        self.auditor = SubmissionAuditor(session, self.catalog, config.max_concurrency, config.request_timeout)
        self._state_lock = asyncio.Lock()

    async def evaluate(self, transition: SlotTransition) -> Optional[GapReport]:
        """Audit the previous proposer against the block hash of the new event."""
        previous, current = transition.previous, transition.current

        pubkey = await self.resolver.resolve_pubkey(previous.proposer_index)
        if not pubkey:
            logger.info("No pubkey found for validator %s, skipping slot %d",
                        previous.proposer_index, previous.proposal_slot)
            return None

        registrations = await self.resolver.check_registrations(pubkey)
        registered = [relay for relay, outcome in registrations.items() if outcome is RelayOutcome.CONFIRMED]

        await asyncio.sleep(self.config.settle_delay)

        audit = await self.auditor.audit_submissions(current.parent_block_hash)

        failed = [relay for relay, outcome in registrations.items() if outcome is RelayOutcome.QUERY_FAILED]
        failed += [relay for relay in audit.failed_relays if relay not in failed]
        if failed:
            logger.warning("Slot %d: relay queries failed for %s", previous.proposal_slot, ", ".join(failed))

        return detect_gaps(registered, self.catalog, audit, previous.proposal_slot, current.parent_block_hash)

    async def handle_event(self, event: SlotEvent) -> Optional[GapReport]:
        """Process one normalized event. Repeats of the last accepted slot are ignored."""
        async with self._state_lock:
            transition = self.deduplicator.begin(event)
            if transition is None:
                return None

            report = None
            try:
                if transition.should_evaluate:
                    report = await asyncio.wait_for(self.evaluate(transition), timeout=self.config.cycle_deadline)
            except ResolutionError as e:
                logger.warning("Could not get pubkey: %s", e)
            except asyncio.TimeoutError:
                logger.warning("Evaluation of slot %d timed out after %.1fs",
                               transition.previous.proposal_slot, self.config.cycle_deadline)
            finally:
                self.deduplicator.commit(event)

            if report is not None:
                self.sink.emit(report)
            return report

    async def handle_message(self, data: Union[str, bytes]) -> Optional[GapReport]:
        try:
            event = parse_payload_attributes(data)
        except MalformedEvent as e:
            logger.warning("Could not process beacon event, msg data %r: %s", data, e)
            return None
        return await self.handle_event(event)

    async def _consume(self, response: aiohttp.ClientResponse) -> None:
        async for event_name, data in iter_sse_events(response.content):
            if event_name != PAYLOAD_ATTRIBUTES_TOPIC:
                continue
            await self.handle_message(data)

    async def _subscribe(self) -> aiohttp.ClientResponse:
        # No total timeout on the stream itself, it stays open indefinitely
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.config.request_timeout)
        try:
            response = await self.session.get(
                self.config.events_url, headers={"Accept": "text/event-stream"}, timeout=timeout
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SubscriptionError(f"Could not subscribe to {self.config.events_url}: {e!r}") from e

        if response.status != 200:
            response.release()
            raise SubscriptionError(f"Could not subscribe to {self.config.events_url}: HTTP {response.status}")
        return response

    async def run(self) -> None:
        """Listen for payload_attributes events forever.

        Failing to subscribe the first time is fatal. Once the stream has been
        established, a dropped connection is re-opened after RECONNECT_DELAY.
        """
        print("Starting to listen for beacon events at ", self.config.events_url)
        response = await self._subscribe()

        while True:
            try:
                await self._consume(response)
                logger.warning("Beacon event stream closed, reconnecting")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("Beacon event stream failed, reconnecting: %r", e)
            finally:
                response.release()

            response = await self._resubscribe()

    async def _resubscribe(self) -> aiohttp.ClientResponse:
        while True:
            await asyncio.sleep(RECONNECT_DELAY)
            try:
                return await self._subscribe()
            except SubscriptionError as e:
                logger.warning("%s, retrying in %.0fs", e, RECONNECT_DELAY)


async def run_monitor(config: MonitorConfig) -> None:
    timeout = aiohttp.ClientTimeout(total=config.request_timeout)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        monitor = RelayBidMonitor(config, session)
        await monitor.run()


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler()
        ]
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main execution function."""
    setup_logging()

    try:
        config = load_config(argv)

        for relay in config.catalog.unaudited_interest():
            logger.warning("Relay of interest %s is not in the relay list and will never be audited", relay)

        logger.info("Polling %d relays, %d of interest", len(config.relays), len(config.relays_of_interest))
        try:
            check_beacon_health(config.beacon_api_url)
        except ConnectionError as e:
            # Only the event subscription decides whether startup fails
            logger.warning("%s", e)

        asyncio.run(run_monitor(config))

    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception as e:
        logger.error(f"Monitor failed: {e}")
        raise


if __name__ == "__main__":
    main(sys.argv[1:])
