#!/usr/bin/env python3
"""
Terminal-style GitHub stats card generator.

Collects (single GraphQL query, paginated):
- Display name
- Follower count
- Owned repository count
- Approximate commits (default-branch history of each non-archived repo)
- Top languages by byte size

Environment Variables:
  GITHUB_USERNAME (required) : GitHub login. Falls back to USER_NAME.
  GITHUB_TOKEN    (required) : Personal token. Falls back to ACCESS_TOKEN.
  GQL_TIMEOUT                : Seconds per GraphQL request. Default 40.
  DEBUG                      : '1' => print per-page trace lines.

Output: assets/stats.svg (overwritten on every run)
"""

from __future__ import annotations
import os
import re
import sys
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import requests
from lxml import etree

# ------------------ Constants ------------------
GRAPHQL_ENDPOINT = "https://api.github.com/graphql"
REPOS_PER_PAGE = 50
MAX_PAGES = 3
LANGUAGES_PER_REPO = 10
TOP_LANGUAGES = 6
DEFAULT_TIMEOUT = 40.0
OUTPUT_PATH = Path("assets") / "stats.svg"

STATS_QUERY = """
query($login: String!, $after: String){
  user(login: $login){
    name
    followers { totalCount }
    repositories(first: %(per_page)d, after: $after, ownerAffiliations: OWNER, isFork: false,
                 orderBy: {field: UPDATED_AT, direction: DESC}){
      pageInfo { hasNextPage endCursor }
      totalCount
      nodes {
        name
        isArchived
        defaultBranchRef{
          target{
            ... on Commit {
              history(first: 1){ totalCount }
            }
          }
        }
        languages(first: %(langs)d, orderBy: {field: SIZE, direction: DESC}){
          edges { size node { name } }
        }
      }
    }
  }
}""" % {"per_page": REPOS_PER_PAGE, "langs": LANGUAGES_PER_REPO}


# ------------------ Errors ------------------
class StatsError(RuntimeError):
    """Fatal condition; the run aborts without writing output."""


class ConfigError(StatsError):
    pass


class GraphQLError(StatsError):
    pass


class RenderError(StatsError):
    pass


# ------------------ Config & Env ------------------
@dataclass(frozen=True)
class Config:
    login: str
    token: str
    debug: bool = False
    timeout: float = DEFAULT_TIMEOUT


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    env = os.environ if environ is None else environ
    login = env.get("GITHUB_USERNAME") or env.get("USER_NAME")
    if not login:
        raise ConfigError("Missing env: GITHUB_USERNAME")
    token = env.get("GITHUB_TOKEN") or env.get("ACCESS_TOKEN")
    if not token:
        raise ConfigError("Missing env: GITHUB_TOKEN")
    timeout_str = env.get("GQL_TIMEOUT", str(DEFAULT_TIMEOUT))
    try:
        timeout = float(timeout_str)
    except ValueError:
        raise ConfigError(f"Invalid GQL_TIMEOUT: {timeout_str!r}") from None
    return Config(login=login, token=token, debug=env.get("DEBUG", "0") == "1", timeout=timeout)


def debug(config: Config, msg: str):
    if config.debug:
        print(f"[DEBUG] {msg}")


# ------------------ Data Model ------------------
@dataclass(frozen=True)
class ProfileSummary:
    login: str
    name: Optional[str]
    followers: int
    total_repos: int

    @property
    def display_name(self) -> str:
        return self.name or self.login


@dataclass(frozen=True)
class RepoRecord:
    name: str
    archived: bool
    commit_count: int
    languages: Tuple[Tuple[str, int], ...]


@dataclass(frozen=True)
class TopLanguage:
    name: str
    percent: int


@dataclass(frozen=True)
class StatsSummary:
    total_commits: int
    top_languages: Tuple[TopLanguage, ...]


@dataclass(frozen=True)
class FetchResult:
    profile: ProfileSummary
    repos: Tuple[Optional[RepoRecord], ...]
    pages: int


# ------------------ Data Collection ------------------
def gql(config: Config, query: str, variables: Dict[str, Any], tag: str) -> Dict[str, Any]:
    headers = {
        "Authorization": f"bearer {config.token}",
        "Accept": "application/vnd.github+json",
    }
    try:
        r = requests.post(
            GRAPHQL_ENDPOINT,
            json={"query": query, "variables": variables},
            headers=headers,
            timeout=config.timeout,
        )
    except requests.RequestException as e:
        raise GraphQLError(f"{tag} request failed: {e}") from e
    if not 200 <= r.status_code < 300:
        raise GraphQLError(f"{tag} failed: {r.status_code} {r.text[:300]}")
    try:
        payload = r.json()
    except ValueError as e:
        raise GraphQLError(f"{tag} returned invalid JSON: {r.text[:300]}") from e
    if not isinstance(payload, dict):
        raise GraphQLError(f"{tag} returned unexpected payload: {r.text[:300]}")
    if payload.get("errors"):
        messages = " | ".join(
            str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in payload["errors"]
        )
        raise GraphQLError(f"{tag} GraphQL errors: {messages}")
    return payload.get("data") or {}


def _get(obj: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing or null."""
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def parse_profile(login: str, user: Optional[Dict[str, Any]]) -> ProfileSummary:
    return ProfileSummary(
        login=login,
        name=_get(user, "name") or None,
        followers=_get(user, "followers", "totalCount") or 0,
        total_repos=_get(user, "repositories", "totalCount") or 0,
    )


def parse_repo(node: Optional[Dict[str, Any]]) -> Optional[RepoRecord]:
    if not isinstance(node, dict) or not node:
        return None
    languages: List[Tuple[str, int]] = []
    for edge in _get(node, "languages", "edges") or []:
        lang = _get(edge, "node", "name")
        if not lang:
            continue
        languages.append((lang, _get(edge, "size") or 0))
    return RepoRecord(
        name=node.get("name") or "",
        archived=bool(node.get("isArchived")),
        commit_count=_get(node, "defaultBranchRef", "target", "history", "totalCount") or 0,
        languages=tuple(languages),
    )


def fetch_stats(config: Config) -> FetchResult:
    """Fetch the profile and up to MAX_PAGES pages of owned, non-fork repositories.

    Pages are requested one at a time. The profile fields come from the first
    page only; later pages repeat them.
    """
    profile: Optional[ProfileSummary] = None
    repos: List[Optional[RepoRecord]] = []
    cursor: Optional[str] = None
    pages = 0
    while pages < MAX_PAGES:
        data = gql(config, STATS_QUERY, {"login": config.login, "after": cursor}, "stats_page")
        pages += 1
        user = _get(data, "user")
        if profile is None:
            profile = parse_profile(config.login, user)

        nodes = _get(user, "repositories", "nodes") or []
        repos.extend(parse_repo(node) for node in nodes)
        page_info = _get(user, "repositories", "pageInfo")
        debug(config, f"page {pages}: {len(nodes)} repos, pageInfo={page_info}")
        if not _get(page_info, "hasNextPage"):
            break
        cursor = _get(page_info, "endCursor")
    return FetchResult(profile=profile, repos=tuple(repos), pages=pages)


# ------------------ Aggregation ------------------
def tally_languages(repos: Sequence[Optional[RepoRecord]]) -> Dict[str, int]:
    tally: Dict[str, int] = {}
    for repo in repos:
        if repo is None or repo.archived:
            continue
        for lang, size in repo.languages:
            tally[lang] = tally.get(lang, 0) + size
    return tally


def compute_top_languages(tally: Mapping[str, int], limit: int = TOP_LANGUAGES) -> List[TopLanguage]:
    """Rank languages by size and express each as a share of the top `limit` only.

    Ties keep first-encountered order. Percentages are rounded half-up and are
    not renormalized, so they need not sum to 100.
    """
    ranked = sorted(tally.items(), key=lambda item: item[1], reverse=True)[:limit]
    total = sum(size for _, size in ranked) or 1
    return [TopLanguage(name, int(math.floor(size / total * 100 + 0.5))) for name, size in ranked]


def aggregate(repos: Sequence[Optional[RepoRecord]]) -> StatsSummary:
    total_commits = sum(r.commit_count for r in repos if r is not None and not r.archived)
    return StatsSummary(
        total_commits=total_commits,
        top_languages=tuple(compute_top_languages(tally_languages(repos))),
    )


# ------------------ SVG Render ------------------
SVG_WIDTH = 760
SVG_HEIGHT = 280
PAD_X = 22
START_Y = 48
LINE_HEIGHT = 18
BOTTOM_MARGIN = 22
MAX_LINES = (SVG_HEIGHT - START_Y - BOTTOM_MARGIN) // LINE_HEIGHT

BG_COLOR = "#0b0f0e"
BORDER_COLOR = "#1f2a27"
ACCENT_COLOR = "#22c55e"
DIM_COLOR = "#86efac"
MONO_FONT = "ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, 'Liberation Mono', 'Courier New', monospace"

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#39;"),
)

# Outside the XML 1.0 Char production; these cannot appear even as entities
_XML_ILLEGAL = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def escape_xml(text: Any) -> str:
    s = _XML_ILLEGAL.sub("", str(text))
    # '&' must go first
    for raw, escaped in _XML_ESCAPES:
        s = s.replace(raw, escaped)
    return s


def format_int(num: int) -> str:
    return f"{num:,}"


def prompt(login: str, command: str) -> str:
    return f"{login}@github:~$ {command}"


def build_lines(login: str, profile: ProfileSummary, summary: StatsSummary) -> List[str]:
    return [
        prompt(login, "whoami"),
        profile.display_name,
        "",
        prompt(login, "stats --summary"),
        f"followers: {format_int(profile.followers)}",
        f"public_repos: {format_int(profile.total_repos)}",
        f"total_commits (approx): {format_int(summary.total_commits)}",
        "",
        prompt(login, "stats --top-languages"),
        *(f"{lang.name.ljust(14)} {str(lang.percent).rjust(5)}%" for lang in summary.top_languages),
        "",
        prompt(login, "_"),
    ]


def line_color(login: str, line: str) -> str:
    if line.startswith(f"{login}@github") or line.endswith("$ _"):
        return ACCENT_COLOR
    return DIM_COLOR


def render_svg(login: str, profile: ProfileSummary, summary: StatsSummary) -> str:
    """Render the terminal card. Lines past MAX_LINES are dropped, never resized."""
    lines = build_lines(login, profile, summary)[:MAX_LINES]
    text_nodes = "\n".join(
        f'  <text x="{PAD_X}" y="{START_Y + i * LINE_HEIGHT}" font-family="{MONO_FONT}" font-size="14" '
        f'fill="{line_color(login, line)}">{escape_xml(line)}</text>'
        for i, line in enumerate(lines)
    )
    who = escape_xml(login)
    svg = f"""<?xml version="1.0" encoding="UTF-8"?>
<svg width="{SVG_WIDTH}" height="{SVG_HEIGHT}" viewBox="0 0 {SVG_WIDTH} {SVG_HEIGHT}" xmlns="http://www.w3.org/2000/svg" role="img" aria-label="Terminal GitHub stats for {who}">
  <defs>
    <filter id="shadow" x="-20%" y="-20%" width="140%" height="140%">
      <feDropShadow dx="0" dy="10" stdDeviation="10" flood-color="#000" flood-opacity="0.45"/>
    </filter>
    <linearGradient id="scan" x1="0" y1="0" x2="0" y2="1">
      <stop offset="0%" stop-color="#ffffff" stop-opacity="0.02"/>
      <stop offset="100%" stop-color="#ffffff" stop-opacity="0.00"/>
    </linearGradient>
  </defs>

  <rect x="0" y="0" width="{SVG_WIDTH}" height="{SVG_HEIGHT}" rx="16" fill="{BG_COLOR}" filter="url(#shadow)"/>
  <rect x="1" y="1" width="{SVG_WIDTH - 2}" height="{SVG_HEIGHT - 2}" rx="15" fill="none" stroke="{BORDER_COLOR}"/>

  <!-- Header dots -->
  <g transform="translate({PAD_X}, 18)">
    <circle cx="8" cy="8" r="5" fill="#ef4444"/>
    <circle cx="28" cy="8" r="5" fill="#f59e0b"/>
    <circle cx="48" cy="8" r="5" fill="#22c55e"/>
    <text x="76" y="12" font-family="{MONO_FONT}" font-size="12" fill="#9ca3af">{who} — stats</text>
  </g>

  <!-- Scanlines -->
  <rect x="0" y="0" width="{SVG_WIDTH}" height="{SVG_HEIGHT}" rx="16" fill="url(#scan)"/>

{text_nodes}
</svg>
"""
    check_svg(svg)
    return svg


def check_svg(svg_text: str):
    try:
        etree.fromstring(svg_text.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise RenderError(f"Rendered SVG is not well-formed: {e}") from e


def write_svg(svg_text: str, path: Path = OUTPUT_PATH):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(svg_text, encoding="utf-8")


# ------------------ Main ------------------
def main() -> int:
    try:
        config = load_config()
        print(f"Collecting stats for {config.login}...")
        t0 = time.time()
        fetched = fetch_stats(config)
        summary = aggregate(fetched.repos)
        svg = render_svg(config.login, fetched.profile, summary)
        write_svg(svg)
    except (StatsError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print(f"Generated {OUTPUT_PATH.as_posix()}")
    print(f"GraphQL pages fetched: {fetched.pages}")
    print("Done in {:.2f}s".format(time.time() - t0))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
