"""
HTTP availability checks for a list of servers.

A reference server is contacted first to confirm the network is usable;
only then is every target server checked for a 200 response.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional, Sequence

import requests
import urllib3
from pydantic import BaseModel, ConfigDict, Field, field_validator

from isserverup.config import check_config
from isserverup.utils import (
    logger,
    log_check,
    log_elapsed,
    normalize_url,
    output_error,
    write_diagnostic,
    ValidationError,
)


# Legacy exit code for an unreachable reference server; shares 0 with PASSED.
REFERENCE_SERVER_FAILURE = 0

# Failures that leave no status code. urllib3 raises LocationParseError (an
# HTTPError) unwrapped for some malformed hosts; IDNA encoding raises ValueError.
TRANSPORT_ERRORS = (requests.RequestException, urllib3.exceptions.HTTPError, ValueError)


class ExitCode(IntEnum):
    """Process exit codes. Strict mode combines FAILED and TRANSPORT_ERROR as bits."""

    PASSED = 0
    FAILED = 1
    TRANSPORT_ERROR = 2
    REFERENCE_UNREACHABLE = 4


class RunOutcome(Enum):
    REFERENCE_UNREACHABLE = "reference_unreachable"
    PASSED = "passed"
    FAILED = "failed"


class CheckTarget(BaseModel):
    """A server to check, as given on the command line."""

    model_config = ConfigDict(extra="forbid")

    index: int = Field(..., ge=1, description="1-based position on the command line")
    url: str = Field(..., description="URL or bare host name to request")

    @field_validator("url")
    def validate_url(cls, v):
        """Normalize bare host names into http:// URLs."""
        try:
            return normalize_url(v)
        except ValidationError as e:
            raise ValueError(str(e)) from e


def build_target(index: int, url: str) -> CheckTarget:
    """
    Validate a single command-line server argument.

    Raises:
        ValidationError: If the argument is not a usable URL
    """
    try:
        return CheckTarget(index=index, url=url)
    except Exception as e:
        raise ValidationError(f"Invalid server argument {url!r}: {e!s}") from e


def build_targets(urls: Sequence[str]) -> List[CheckTarget]:
    """Validate target arguments, numbering them from 1 in command-line order."""
    return [build_target(index, url) for index, url in enumerate(urls, start=1)]


@dataclass
class CheckResult:
    """Outcome of one HTTP request."""

    url: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def transport_ok(self) -> bool:
        return self.error is None

    @property
    def passed(self) -> bool:
        return self.transport_ok and self.status_code == check_config.expected_status

    @property
    def display_code(self) -> int:
        """Status code as printed in diagnostics; 0 when none was obtained."""
        return self.status_code if self.status_code is not None else 0


@dataclass
class RunSummary:
    """Results of one run: the reference check plus every target check made."""

    reference: CheckResult
    results: List[CheckResult] = field(default_factory=list)

    @property
    def outcome(self) -> RunOutcome:
        if not self.reference.transport_ok:
            return RunOutcome.REFERENCE_UNREACHABLE
        if all(result.passed for result in self.results):
            return RunOutcome.PASSED
        return RunOutcome.FAILED


def configure_tls(verify_tls: bool) -> None:
    """Silence urllib3's per-request warning once the user has opted out of verification."""
    if verify_tls:
        return
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    logger.warning("TLS certificate verification is DISABLED (--insecure)")


def _request_status(url: str, verify_tls: bool) -> CheckResult:
    """Perform the HEAD request and log it, without writing diagnostics."""
    start_time = time.monotonic()

    try:
        with requests.Session() as session:
            session.headers["User-Agent"] = check_config.user_agent
            response = session.head(
                url,
                allow_redirects=True,
                verify=verify_tls,
                timeout=check_config.timeout_seconds,
            )
            status_code = response.status_code
            response.close()
    except TRANSPORT_ERRORS as e:
        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        error = str(e) or type(e).__name__
        log_check(logger, url, None, elapsed_ms, error=error)
        return CheckResult(url=url, error=error, elapsed_ms=elapsed_ms)

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    log_check(logger, url, status_code, elapsed_ms)
    return CheckResult(url=url, status_code=status_code, elapsed_ms=elapsed_ms)


@log_elapsed
def fetch_status(url: str, verify_tls: bool = True) -> CheckResult:
    """
    Request only the headers of a URL and report the final status code.

    Redirects are followed. The session is scoped to this single request
    and closed on every path. A transport failure is written to stderr
    as "<url> error: <message>".

    Args:
        url: URL to request
        verify_tls: Whether to verify the peer's TLS certificate

    Returns:
        CheckResult: status_code is set on success; error is set on
        transport failure (DNS, connection, timeout, TLS, bad URL,
        too many redirects)
    """
    result = _request_status(url, verify_tls)
    if not result.transport_ok:
        output_error(url, result.error)
    return result


def check_reference(target: CheckTarget, verify_tls: bool = True) -> CheckResult:
    """Check the reference server; the code line is printed before any error lines."""
    result = _request_status(target.url, verify_tls)
    write_diagnostic(f"\nReference server response code: {result.display_code}", end="\n\n")

    if not result.transport_ok:
        write_diagnostic(f"TRANSPORT ERROR for reference server: {target.url}")
        output_error(target.url, result.error)

    return result


def check_reference_server(url: str, verify_tls: bool = True) -> bool:
    """
    Check the availability of the reference server.

    Any response, even a non-200 one, means the network is present.

    Returns:
        bool: True if the network should be considered unreliable
    """
    result = check_reference(build_target(1, url), verify_tls=verify_tls)
    return not result.transport_ok


def check_target(target: CheckTarget, verify_tls: bool = True) -> CheckResult:
    result = fetch_status(target.url, verify_tls=verify_tls)
    write_diagnostic(f"Check {target.index}: ({result.display_code}) {target.url}")
    return result


def check_targets(targets: Sequence[CheckTarget], verify_tls: bool = True) -> List[CheckResult]:
    """Check every target in order; a failure never stops the loop."""
    return [check_target(target, verify_tls=verify_tls) for target in targets]


def check_servers(urls: Sequence[str], verify_tls: bool = True) -> bool:
    """
    Check that each URL returns a 200.

    Returns:
        bool: True if all returned exactly 200
    """
    results = check_targets(build_targets(urls), verify_tls=verify_tls)
    return all(result.passed for result in results)


def run_checks(
    targets: Sequence[CheckTarget],
    reference: CheckTarget,
    verify_tls: bool = True,
) -> RunSummary:
    """
    Check the reference server, then every target.

    If the reference cannot be reached no target is contacted.
    """
    configure_tls(verify_tls)

    summary = RunSummary(reference=check_reference(reference, verify_tls=verify_tls))
    if summary.outcome is RunOutcome.REFERENCE_UNREACHABLE:
        logger.info(f"Reference server {reference.url} unreachable, skipping {len(targets)} target(s)")
        return summary

    summary.results.extend(check_targets(targets, verify_tls=verify_tls))
    return summary


def report_outcome(summary: RunSummary) -> None:
    """Print the final banner for a run."""
    outcome = summary.outcome
    if outcome is RunOutcome.REFERENCE_UNREACHABLE:
        write_diagnostic(
            "ABORTING. Reference server check failed, therefore network considered unreliable."
        )
    elif outcome is RunOutcome.PASSED:
        write_diagnostic("\nTEST PASSED!")
    else:
        write_diagnostic("\nTEST FAILED!")


def exit_code_for(summary: RunSummary, strict: bool = False) -> int:
    """
    Map a run summary to a process exit code.

    Default mode keeps the historic codes: 0 for an unreachable reference
    or all passed, 1 for any failure. Strict mode returns
    REFERENCE_UNREACHABLE (4) for the abort, otherwise a bit set of
    FAILED (1, a non-200 status) and TRANSPORT_ERROR (2).

    Args:
        summary: Result of run_checks
        strict: Use the distinct exit codes

    Returns:
        int: Process exit code
    """
    outcome = summary.outcome

    if outcome is RunOutcome.REFERENCE_UNREACHABLE:
        return int(ExitCode.REFERENCE_UNREACHABLE) if strict else REFERENCE_SERVER_FAILURE

    if not strict:
        return int(ExitCode.PASSED if outcome is RunOutcome.PASSED else ExitCode.FAILED)

    code = 0
    for result in summary.results:
        if not result.transport_ok:
            code |= ExitCode.TRANSPORT_ERROR
        elif not result.passed:
            code |= ExitCode.FAILED
    return int(code)
