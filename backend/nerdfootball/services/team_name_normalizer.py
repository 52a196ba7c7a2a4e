"""
backend/nerdfootball/services/team_name_normalizer.py

Purpose:
    Map abbreviated and alternate NFL team spellings (ESPN short names, ticker
    abbreviations, nicknames, relocated franchises) onto one canonical
    "City Name" form so picks and game results compare by equality.

Dependencies:
    - re
    - unicodedata
"""

from __future__ import annotations

import re
import unicodedata

_PUNCT_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_RE = re.compile(r"\s+")

# canonical name -> known alternate spellings
_TEAM_ALIASES: dict[str, tuple[str, ...]] = {
    "Arizona Cardinals": ("ARI", "ARZ", "Cardinals", "AZ Cardinals", "St. Louis Cardinals"),
    "Atlanta Falcons": ("ATL", "Falcons"),
    "Baltimore Ravens": ("BAL", "Ravens"),
    "Buffalo Bills": ("BUF", "Bills"),
    "Carolina Panthers": ("CAR", "Panthers"),
    "Chicago Bears": ("CHI", "Bears"),
    "Cincinnati Bengals": ("CIN", "Bengals"),
    "Cleveland Browns": ("CLE", "Browns"),
    "Dallas Cowboys": ("DAL", "Cowboys"),
    "Denver Broncos": ("DEN", "Broncos"),
    "Detroit Lions": ("DET", "Lions"),
    "Green Bay Packers": ("GB", "GNB", "Packers", "GB Packers"),
    "Houston Texans": ("HOU", "Texans"),
    "Indianapolis Colts": ("IND", "Colts"),
    "Jacksonville Jaguars": ("JAX", "JAC", "Jaguars", "Jags"),
    "Kansas City Chiefs": ("KC", "KAN", "Chiefs", "KC Chiefs"),
    "Las Vegas Raiders": ("LV", "LVR", "OAK", "Raiders", "LV Raiders", "Oakland Raiders"),
    "Los Angeles Chargers": ("LAC", "Chargers", "LA Chargers", "San Diego Chargers", "SD Chargers"),
    "Los Angeles Rams": ("LAR", "Rams", "LA Rams", "St. Louis Rams", "STL Rams"),
    "Miami Dolphins": ("MIA", "Dolphins"),
    "Minnesota Vikings": ("MIN", "Vikings"),
    "New England Patriots": ("NE", "NWE", "Patriots", "NE Patriots", "Pats"),
    "New Orleans Saints": ("NO", "NOR", "Saints", "NO Saints"),
    "New York Giants": ("NYG", "Giants", "NY Giants"),
    "New York Jets": ("NYJ", "Jets", "NY Jets"),
    "Philadelphia Eagles": ("PHI", "Eagles"),
    "Pittsburgh Steelers": ("PIT", "Steelers"),
    "San Francisco 49ers": ("SF", "SFO", "49ers", "Niners", "SF 49ers"),
    "Seattle Seahawks": ("SEA", "Seahawks"),
    "Tampa Bay Buccaneers": ("TB", "TAM", "Buccaneers", "Bucs", "TB Buccaneers"),
    "Tennessee Titans": ("TEN", "Titans"),
    "Washington Commanders": (
        "WSH",
        "WAS",
        "Commanders",
        "Washington",
        "Washington Football Team",
        "Washington Redskins",
    ),
}


def alias_key(raw: str) -> str:
    """
    Normalize team text into an ASCII-safe lookup key.

    Steps:
        1. lowercase + trim
        2. NFKD accent removal
        3. punctuation cleanup
        4. whitespace collapse
    """
    text = str(raw or "").strip().lower()
    if not text:
        return ""

    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = _PUNCT_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def _build_lookup() -> dict[str, str]:
    lookup: dict[str, str] = {}
    for canonical, aliases in _TEAM_ALIASES.items():
        for name in (canonical, *aliases):
            key = alias_key(name)
            existing = lookup.get(key)
            if existing and existing != canonical:
                raise ValueError(f"Alias {name!r} maps to both {existing!r} and {canonical!r}")
            lookup[key] = canonical
    return lookup


_LOOKUP = _build_lookup()


def normalize(raw_name: str) -> str:
    """Return the canonical team name, or the input unchanged when unmapped.

    Idempotent: every canonical name maps to itself.
    """
    if raw_name is None:
        return ""
    return _LOOKUP.get(alias_key(raw_name), raw_name)


def is_known_team(name: str) -> bool:
    return alias_key(name) in _LOOKUP


def canonical_teams() -> list[str]:
    return sorted(_TEAM_ALIASES)
