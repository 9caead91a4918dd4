"""Static known-vulnerable table, consulted before any advisory query."""

from __future__ import annotations

from collections.abc import Mapping

from packsafe.engines.dependency_analyzer.models import Vulnerability

# (package name, cleaned version) -> vulnerability
KnownVulnerabilities = Mapping[tuple[str, str], Vulnerability]

KNOWN_VULNERABILITIES: KnownVulnerabilities = {
    ("lodash", "4.17.0"): Vulnerability(
        id="CVE-2019-10744",
        severity="high",
        description="Prototype pollution vulnerability in Lodash",
        references=["https://nvd.nist.gov/vuln/detail/CVE-2019-10744"],
    ),
    ("axios", "0.19.0"): Vulnerability(
        id="CVE-2020-28168",
        severity="medium",
        description="Axios SSRF vulnerability",
        references=["https://nvd.nist.gov/vuln/detail/CVE-2020-28168"],
    ),
}
