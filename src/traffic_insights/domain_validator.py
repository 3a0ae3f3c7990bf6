"""
Domain validation and normalization module.

Turns arbitrary user input (bare hostnames, full URLs, internationalized
names) into a canonical public hostname, or rejects it with a specific reason.
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

import idna

from traffic_insights.enums import DomainValidationErrorCode
from traffic_insights.exceptions import ValidationError


SCHEME_PATTERN = re.compile(r"^[a-z]+://", re.IGNORECASE)

# Public hostname grammar: 1-63 chars per label, no leading/trailing hyphen,
# at most 253 chars overall
HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?!-)[a-z0-9-]{1,63}(?<!-)(\.(?!-)[a-z0-9-]{1,63}(?<!-))*$"
)

DECIMAL_PART = re.compile(r"^[0-9]+$")
HEX_PART = re.compile(r"^[0-9a-f]+$")
OCTAL_PART = re.compile(r"^[0-7]+$")

BLOCKED_HOSTNAMES = frozenset({"localhost", "local", "internal"})

DEFAULT_SCHEME = "https"

MESSAGES = {
    DomainValidationErrorCode.EMPTY_INPUT: "Please enter a URL or domain.",
    DomainValidationErrorCode.INVALID_URL: "That doesn't look like a valid URL.",
    DomainValidationErrorCode.EMPTY_HOSTNAME: "Please enter a valid domain.",
    DomainValidationErrorCode.BLOCKED_HOSTNAME: "Localhost domains are not supported.",
    DomainValidationErrorCode.IP_ADDRESS: "IP addresses are not supported.",
    DomainValidationErrorCode.IDNA_ERROR: "Internationalized domain could not be encoded.",
    DomainValidationErrorCode.NOT_PUBLIC: "Please enter a public domain name.",
}


@dataclass
class DomainValidationError:
    """Structured error information for domain validation failures."""

    code: DomainValidationErrorCode
    message: str
    details: dict


@dataclass
class DomainValidationResult:
    """Result of domain validation operation."""

    valid: bool
    canonical_domain: Optional[str]
    error: Optional[DomainValidationError]


def _failure(code: DomainValidationErrorCode, **details) -> DomainValidationResult:
    return DomainValidationResult(
        valid=False,
        canonical_domain=None,
        error=DomainValidationError(
            code=code,
            message=MESSAGES[code],
            details=details,
        ),
    )


class DomainNormalizer:
    """
    Validates and normalizes domain input.

    Handles:
    - URLs with or without a scheme, paths, ports and credentials
    - Lowercasing, a single leading "www." and a trailing dot
    - Rejection of local names and IP literals
    - IDNA encoding of international labels
    - Public hostname grammar
    """

    def validate(self, raw_input: str) -> DomainValidationResult:
        """
        Validate and normalize a URL or domain string.

        Args:
            raw_input: The raw user input

        Returns:
            DomainValidationResult with the canonical domain or a specific error
        """
        trimmed = (raw_input or "").strip()
        if not trimmed:
            return _failure(DomainValidationErrorCode.EMPTY_INPUT, raw_input=raw_input)

        hostname = self._extract_hostname(trimmed)
        if hostname is None:
            return _failure(DomainValidationErrorCode.INVALID_URL, raw_input=raw_input)

        normalized = hostname.lower()
        if normalized.startswith("www."):
            normalized = normalized[4:]
        if normalized.endswith("."):
            normalized = normalized[:-1]

        if not normalized:
            return _failure(DomainValidationErrorCode.EMPTY_HOSTNAME, raw_input=raw_input)

        if normalized in BLOCKED_HOSTNAMES or normalized.endswith(".localhost"):
            return _failure(
                DomainValidationErrorCode.BLOCKED_HOSTNAME,
                raw_input=raw_input,
                hostname=normalized,
            )

        if self._is_ip_address(normalized):
            return _failure(
                DomainValidationErrorCode.IP_ADDRESS,
                raw_input=raw_input,
                hostname=normalized,
            )

        if self._ends_in_number(normalized):
            return _failure(DomainValidationErrorCode.INVALID_URL, raw_input=raw_input)

        try:
            ascii_domain = self.to_ascii(normalized)
        except ValidationError as e:
            return _failure(
                DomainValidationErrorCode.IDNA_ERROR,
                raw_input=raw_input,
                idna_error=e.details.get("idna_error"),
            )

        if not HOSTNAME_PATTERN.match(ascii_domain) or "." not in ascii_domain:
            return _failure(
                DomainValidationErrorCode.NOT_PUBLIC,
                raw_input=raw_input,
                hostname=ascii_domain,
            )

        return DomainValidationResult(
            valid=True,
            canonical_domain=ascii_domain,
            error=None,
        )

    def normalize(self, raw_input: str) -> str:
        """
        Return the canonical domain for raw_input.

        Raises:
            ValidationError: With the specific rejection code and message
        """
        result = self.validate(raw_input)
        if not result.valid:
            raise ValidationError(
                code=result.error.code.value,
                message=result.error.message,
                details=result.error.details,
            )
        return result.canonical_domain

    def to_ascii(self, hostname: str) -> str:
        """
        Encode internationalized labels to their ASCII-compatible form.

        Pure ASCII input is returned unchanged.

        Raises:
            ValidationError: If IDNA encoding fails
        """
        if hostname.isascii():
            return hostname

        try:
            return idna.encode(hostname, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=DomainValidationErrorCode.IDNA_ERROR.value,
                message=f"IDNA encoding failed: {e}",
                details={"hostname": hostname, "idna_error": str(e)},
            )

    def _extract_hostname(self, value: str) -> Optional[str]:
        with_scheme = value if SCHEME_PATTERN.match(value) else f"{DEFAULT_SCHEME}://{value}"
        try:
            parts = urlsplit(with_scheme)
            # Accessing port validates it; a bad port means a malformed URL
            parts.port
        except ValueError:
            return None

        if not parts.netloc:
            return None

        hostname = parts.hostname
        if hostname is None:
            return None

        # IPv6 literals come back without brackets; other hosts must not
        # carry characters a URL parser would have rejected
        if any(ch.isspace() for ch in hostname) or any(ch in hostname for ch in "<>\"{}|\\^`%"):
            return None
        return hostname

    @staticmethod
    def _is_ip_address(hostname: str) -> bool:
        try:
            ipaddress.ip_address(hostname)
        except ValueError:
            # URL hosts also accept IPv4 shorthand such as "127.1" or "0x7f.1"
            return _parse_ipv4_shorthand(hostname) is not None
        return True

    @staticmethod
    def _ends_in_number(hostname: str) -> bool:
        """True if the last label would make a URL parser read the host as IPv4."""
        return _ipv4_number(hostname.rsplit(".", 1)[-1]) is not None


def _ipv4_number(part: str) -> Optional[int]:
    """Decimal, 0x-hex or 0-prefixed octal IPv4 part, or None."""
    if not part:
        return None

    if part.startswith("0x"):
        digits = part[2:]
        if not digits:
            return 0
        return int(digits, 16) if HEX_PART.match(digits) else None

    if len(part) > 1 and part.startswith("0"):
        digits = part[1:]
        return int(digits, 8) if OCTAL_PART.match(digits) else None

    return int(part) if DECIMAL_PART.match(part) else None


def _parse_ipv4_shorthand(hostname: str) -> Optional[int]:
    """IPv4 address written with one to four parts, as a 32-bit integer, or None."""
    parts = hostname.split(".")
    if len(parts) > 4:
        return None

    numbers = [_ipv4_number(part) for part in parts]
    if any(number is None for number in numbers):
        return None

    *leading, last = numbers
    if any(number > 255 for number in leading):
        return None
    if last >= 256 ** (5 - len(numbers)):
        return None

    address = last
    for index, number in enumerate(leading):
        address += number * 256 ** (3 - index)
    return address


def normalize_domain(raw_input: str) -> DomainValidationResult:
    """Validate raw_input with a default DomainNormalizer."""
    return DomainNormalizer().validate(raw_input)
