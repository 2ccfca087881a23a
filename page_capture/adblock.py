"""Best-effort ad blocking through request interception.

Requests to known advertising and tracking hosts (and their subdomains) are
aborted. Extra hosts can be listed in the file named by the
`ad_block_hosts_file` setting, one per line, as a bare host name, a hosts
file entry (`0.0.0.0 ads.example.com`) or a domain-anchored filter rule
(`||ads.example.com^`).

This is a host blocklist, not a filter list engine. Path and wildcard
rules, exceptions, rule options and cosmetic (element hiding) rules from
EasyList-style lists are skipped, and the built-in list only covers the
large ad and analytics networks. Use `hide_elements` or `remove_elements`
for page-level clutter.
"""

import logging
import re
from pathlib import Path
from typing import FrozenSet, Iterable, Optional
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError

from config import env

logger = logging.getLogger(__name__)

HOSTS_FILE_ADDRESSES = ("0.0.0.0", "127.0.0.1", "::", "::1")
# Element hiding and scriptlet separators: ##, #@#, #?#, #$#
COSMETIC_RULE = re.compile(r"#[@?$]?#")

DEFAULT_BLOCKED_HOSTS = frozenset(
    {
        "googlesyndication.com",
        "doubleclick.net",
        "googleadservices.com",
        "adservice.google.com",
        "adnxs.com",
        "criteo.com",
        "criteo.net",
        "taboola.com",
        "outbrain.com",
        "amazon-adsystem.com",
        "adsrvr.org",
        "pubmatic.com",
        "rubiconproject.com",
        "openx.net",
        "moatads.com",
        "scorecardresearch.com",
        "quantserve.com",
        "google-analytics.com",
        "googletagmanager.com",
        "hotjar.com",
        "mixpanel.com",
    }
)


def load_blocked_hosts(hosts_file: Optional[str] = None) -> FrozenSet[str]:
    """Return the default blocked hosts plus the ones listed in `hosts_file`."""
    hosts = set(DEFAULT_BLOCKED_HOSTS)
    if not hosts_file:
        return frozenset(hosts)

    try:
        for line in Path(hosts_file).read_text().splitlines():
            host = parse_host_rule(line)
            if host:
                hosts.add(host)
    except OSError as e:
        logger.warning("Could not read ad block hosts file %s: %s", hosts_file, e)
    return frozenset(hosts)


def parse_host_rule(line: str) -> Optional[str]:
    """Extract the blocked host from one line of a hosts file or filter list.

    Returns None for comments, blank lines and rules that are not a plain
    host block.
    """
    line = line.strip().lower()
    if not line or line[0] in "#!" or COSMETIC_RULE.search(line):
        return None
    line = line.split("#", 1)[0].strip()

    if line.startswith("||"):
        host = line[2:]
        if host.endswith("^"):
            host = host[:-1]
    else:
        fields = line.split()
        if len(fields) == 2 and fields[0] in HOSTS_FILE_ADDRESSES:
            host = fields[1]
        elif len(fields) == 1:
            host = fields[0]
        else:
            return None

    if host == "localhost" or not host or any(c in host for c in "/*^$@|[]"):
        return None
    return host


def is_blocked(url: str, hosts: Iterable[str]) -> bool:
    """Check whether the URL's host, or one of its parent domains, is blocked."""
    hostname = (urlsplit(url).hostname or "").lower()
    if not hostname:
        return False
    labels = hostname.split(".")
    return any(".".join(labels[i:]) in hosts for i in range(len(labels) - 1))


class AdBlocker:
    """Aborts requests to blocked hosts on one page."""

    def __init__(self, hosts: Optional[FrozenSet[str]] = None):
        if hosts is None:
            hosts = load_blocked_hosts(env.get_setting("ad_block_hosts_file"))
        self.hosts = hosts
        self.blocked_count = 0

    async def _handle_route(self, route) -> None:
        if is_blocked(route.request.url, self.hosts):
            self.blocked_count += 1
            logger.debug("Blocked request to %s", route.request.url)
            await route.abort("blockedbyclient")
        else:
            await route.continue_()

    async def install(self, page) -> bool:
        """Start filtering the page's requests.

        Returns:
            True if the filter is active, False if it could not be installed
        """
        try:
            await page.route("**/*", self._handle_route)
        except PlaywrightError as e:
            logger.warning("Ad blocking disabled, could not install request filter: %s", e)
            return False
        return True
