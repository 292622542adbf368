"""
Candidate Vetting - Platform Classifier

URL pattern matching for political candidates' online presence.

Categories:
- political_platform: Ballotpedia, VoteSmart, FEC, ...
- social_media / professional_network / content_platform / news_media
- campaign_website: custom domain with campaign keywords
- website: any other custom domain
"""
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class PlatformClassification:
    platform_type: str
    platform_name: str
    category: str


# (pattern, type, display name, category) - first match wins
PLATFORM_PATTERNS = [
    # Political platforms
    (r"ballotpedia\.org", "ballotpedia", "Ballotpedia", "political_platform"),
    (r"votesmart\.org", "votesmart", "VoteSmart", "political_platform"),
    (r"opensecrets\.org", "opensecrets", "OpenSecrets", "political_platform"),
    (r"fec\.gov", "fec", "FEC", "political_platform"),
    (r"govtrack\.us", "govtrack", "GovTrack", "political_platform"),
    (r"congress\.gov", "congress-gov", "Congress.gov", "political_platform"),
    (r"followthemoney\.org", "followthemoney", "FollowTheMoney", "political_platform"),
    (r"vote411\.org", "vote411", "Vote411", "political_platform"),
    (r"isidewith\.com", "isidewith", "iSideWith", "political_platform"),

    # Social media
    (r"facebook\.com/(?!marketplace|groups)", "facebook", "Facebook", "social_media"),
    (r"twitter\.com", "twitter", "Twitter/X", "social_media"),
    (r"(?:^|[/.])x\.com", "twitter", "X (Twitter)", "social_media"),
    (r"instagram\.com", "instagram", "Instagram", "social_media"),
    (r"tiktok\.com", "tiktok", "TikTok", "social_media"),
    (r"threads\.net", "threads", "Threads", "social_media"),
    (r"nextdoor\.com", "nextdoor", "Nextdoor", "social_media"),
    (r"truthsocial\.com", "truthsocial", "Truth Social", "social_media"),
    (r"rumble\.com", "rumble", "Rumble", "social_media"),

    # Professional networks
    (r"linkedin\.com/in/", "linkedin-personal", "LinkedIn (Personal)", "professional_network"),
    (r"linkedin\.com/company/", "linkedin-company", "LinkedIn (Company)", "professional_network"),
    (r"linkedin\.com", "linkedin", "LinkedIn", "professional_network"),

    # Content platforms
    (r"youtube\.com/(?:@|c/|channel/|user/)", "youtube", "YouTube", "content_platform"),
    (r"youtu\.be", "youtube", "YouTube", "content_platform"),
    (r"medium\.com", "medium", "Medium", "content_platform"),
    (r"substack\.com", "substack", "Substack", "content_platform"),
    (r"podcasts\.apple\.com", "apple-podcasts", "Apple Podcasts", "content_platform"),
    (r"spotify\.com/show", "spotify-podcast", "Spotify Podcast", "content_platform"),

    # News / media
    (r"patch\.com", "patch", "Patch", "news_media"),
    (r"localnews", "local-news", "Local News", "news_media"),

    # Scheduling / events
    (r"eventbrite\.com", "eventbrite", "Eventbrite", "other"),
    (r"meetup\.com", "meetup", "Meetup", "other"),
    (r"calendly\.com", "calendly", "Calendly", "other"),
    (r"linktree", "linktree", "Linktree", "other"),
]

_COMPILED_PATTERNS = [
    (re.compile(pattern, re.IGNORECASE), ptype, name, category)
    for pattern, ptype, name, category in PLATFORM_PATTERNS
]

KNOWN_PLATFORM_DOMAINS = frozenset([
    "linkedin.com", "facebook.com", "twitter.com", "x.com", "instagram.com",
    "youtube.com", "medium.com", "substack.com", "tiktok.com", "threads.net",
    "ballotpedia.org", "votesmart.org", "opensecrets.org", "fec.gov",
    "govtrack.us", "congress.gov", "patch.com", "eventbrite.com",
    "meetup.com", "calendly.com", "truthsocial.com", "rumble.com",
    "nextdoor.com",
])

CAMPAIGN_KEYWORDS = ("campaign", "elect", "vote", "for", "committee")

_TLD_RE = re.compile(r"\.(com|org|net|io|co|us|info|gov)$", re.IGNORECASE)


def hostname_of(url: str) -> Optional[str]:
    """Lowercased hostname; bare domains are treated as https."""
    candidate = url if url.startswith("http") else f"https://{url}"
    try:
        return urlparse(candidate).hostname
    except ValueError:
        return None


def classify_url(url: Optional[str]) -> Optional[PlatformClassification]:
    """
    Classify a URL into a known platform or a custom website.

    Returns None for values that do not look like URLs.
    """
    if not url or not isinstance(url, str):
        return None
    normalized = url.lower().strip()
    if not normalized.startswith(("http://", "https://")) and "." not in normalized:
        return None

    for pattern, ptype, name, category in _COMPILED_PATTERNS:
        if pattern.search(normalized):
            return PlatformClassification(platform_type=ptype, platform_name=name, category=category)

    hostname = hostname_of(normalized)
    if not hostname:
        return None
    if any(domain in hostname for domain in KNOWN_PLATFORM_DOMAINS):
        return None
    return _classify_custom_domain(normalized, hostname)


def _classify_custom_domain(url: str, hostname: str) -> PlatformClassification:
    clean = re.sub(r"^www\.", "", hostname)
    is_campaign = any(kw in clean or kw in url for kw in CAMPAIGN_KEYWORDS)
    return PlatformClassification(
        platform_type="campaign-website" if is_campaign else "custom-website",
        platform_name=format_domain_name(clean),
        category="campaign_website" if is_campaign else "website",
    )


def format_domain_name(domain: str) -> str:
    """'smith-for-senate.com' -> 'Smith For Senate'"""
    without_tld = _TLD_RE.sub("", domain)
    return " ".join(word[:1].upper() + word[1:] for word in re.split(r"[.-]", without_tld) if word)


def is_political_platform(url: str) -> bool:
    classification = classify_url(url)
    return classification is not None and classification.category == "political_platform"


def is_social_media(url: str) -> bool:
    classification = classify_url(url)
    return classification is not None and classification.category == "social_media"
