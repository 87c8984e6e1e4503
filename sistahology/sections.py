"""Typed payloads for site sections.

``site_sections.content_json`` is stored as a free-form JSON document, but
each well-known ``section_key`` has a fixed shape. The registry below maps
those keys to pydantic models so payloads are validated on write; keys
that are not registered are stored as plain mappings.
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict


class SectionPayload(BaseModel):
    """Base class for section payloads; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


# About page


class FounderBio(SectionPayload):
    name: str
    title: str
    quote_1: str
    quote_2: str
    quote_3: str
    icon: str


class MissionValue(SectionPayload):
    title: str
    icon: str
    description: str


class MissionValues(SectionPayload):
    intro: str
    values: List[MissionValue]


class PlatformFeature(SectionPayload):
    title: str
    icon: str
    description: str


class PlatformFeatures(SectionPayload):
    features: List[PlatformFeature]


class CommunityStat(SectionPayload):
    value: str
    label: str


class CommunityStats(SectionPayload):
    stats: List[CommunityStat]


# Contact page


class ContactInfo(SectionPayload):
    email: str
    phone: str
    address: str
    hours: str


class SocialPlatform(SectionPayload):
    name: str
    handle: str
    url: str


class SocialMedia(SectionPayload):
    platforms: List[SocialPlatform]


class FAQItem(SectionPayload):
    question: str
    answer: str


class FAQLinks(SectionPayload):
    questions: List[FAQItem]


# News page


class AnniversaryEvent(SectionPayload):
    icon: str
    date: str
    description: str
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None


class BookLaunch(SectionPayload):
    icon: str
    book_title: str
    author: str
    description: str
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None


class WellnessProducts(SectionPayload):
    icon: str
    collection_name: str
    description: str
    social_handle: str
    social_platform: str


class UpcomingEventItem(SectionPayload):
    date: str
    title: str
    description: str


class UpcomingEvents(SectionPayload):
    events: List[UpcomingEventItem]


class CommunitySpotlightStat(SectionPayload):
    icon: str
    value: str
    label: str


class CommunitySpotlight(SectionPayload):
    intro: str
    stats: List[CommunitySpotlightStat]
    cta_text: str
    cta_link: str


SECTION_TYPES: Dict[str, Type[SectionPayload]] = {
    "founder_bio": FounderBio,
    "mission_values": MissionValues,
    "platform_features": PlatformFeatures,
    "community_stats": CommunityStats,
    "contact_info": ContactInfo,
    "social_media": SocialMedia,
    "faq_links": FAQLinks,
    "anniversary_event": AnniversaryEvent,
    "book_launch": BookLaunch,
    "wellness_products": WellnessProducts,
    "upcoming_events": UpcomingEvents,
    "community_spotlight": CommunitySpotlight,
}


def validate_section_content(section_key: str, content: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate ``content`` against the model registered for ``section_key``.

    Args:
        section_key (str): Section identifier within its page.
        content (dict): Raw JSON payload.

    Raises:
        pydantic.ValidationError: If a registered payload is malformed.

    Returns:
        dict: Normalised payload ready for storage.
    """
    payload_type = SECTION_TYPES.get(section_key)
    if payload_type is None:
        return dict(content)
    return payload_type.model_validate(content).model_dump()
