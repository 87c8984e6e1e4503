"""Initial site content: home page, page sections, blog posts, prompts.

Running :func:`seed_all` again updates the seeded rows in place instead
of duplicating them. Writing prompts are only inserted while the table
is empty, so prompts edited by admins are left alone.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import models
from .guard import acting_as
from .policy import SERVICE
from .sections import validate_section_content

logger = logging.getLogger(__name__)


HOME_PAGE = {
    "slug": "home",
    "title": "WELCOME",
    "content_html": (
        "<h1>WELCOME</h1>\n"
        "<p>Welcome to Sistahology.com, the place <em>just for women</em> where we can "
        "be ourselves and experience the true essence of who we are and who we are "
        "becoming. This is a <strong>FREE online journaling platform</strong> where we "
        "can empty our thoughts, talk out loud, say things we'd dare not say in public.</p>\n"
        "<p>So, welcome to your space. <em>It's not about the destination, but the "
        "journey.</em></p>\n"
        "<p>Andrea Brooks, Founder, Sistahology.com</p>"
    ),
}

SECTIONS = [
    {
        "page_slug": "about",
        "section_key": "founder_bio",
        "section_title": "Meet Andrea Brooks",
        "display_order": 1,
        "content_json": {
            "name": "Andrea Brooks",
            "title": "Founder & Visionary of Sistahology.com",
            "quote_1": (
                "My journey with journaling began during a difficult period in my life "
                "when I needed a safe space to process my thoughts and emotions."
            ),
            "quote_2": (
                "I created Sistahology.com because I believe every woman deserves a space "
                "where she can be authentically herself."
            ),
            "quote_3": (
                "My goal is that women are allowed to just BE. To create, express, explore, "
                "and exercise our right to write."
            ),
            "icon": "Heart",
        },
    },
    {
        "page_slug": "about",
        "section_key": "mission_values",
        "section_title": "Our Mission & Values",
        "display_order": 2,
        "content_json": {
            "intro": (
                "Creating a supportive digital sanctuary for women's voices, stories, "
                "and growth"
            ),
            "values": [
                {
                    "title": "Community",
                    "icon": "Users",
                    "description": (
                        "Building a supportive sisterhood where women can connect, share "
                        "experiences, and grow together."
                    ),
                },
                {
                    "title": "Authenticity",
                    "icon": "Heart",
                    "description": (
                        "Encouraging women to embrace their true selves and honor their "
                        "unique journey."
                    ),
                },
                {
                    "title": "Growth",
                    "icon": "Sparkles",
                    "description": (
                        "Fostering personal development through reflective writing and "
                        "self-discovery."
                    ),
                },
            ],
        },
    },
    {
        "page_slug": "about",
        "section_key": "platform_features",
        "section_title": "Why Choose Sistahology?",
        "display_order": 3,
        "content_json": {
            "features": [
                {
                    "title": "Private & Secure",
                    "icon": "Lock",
                    "description": "Your journals are completely private.",
                },
                {
                    "title": "Multiple Journals",
                    "icon": "BookOpen",
                    "description": (
                        "Keep separate spaces for work, personal growth, gratitude, and more."
                    ),
                },
                {
                    "title": "Search & Reflect",
                    "icon": "Search",
                    "description": "Find past entries and reflect on your journey.",
                },
                {
                    "title": "Free Forever",
                    "icon": "Heart",
                    "description": "Sistahology is and always will be free.",
                },
            ],
        },
    },
    {
        "page_slug": "about",
        "section_key": "community_stats",
        "section_title": "Our Growing Community",
        "display_order": 4,
        "content_json": {
            "stats": [
                {"value": "15,000+", "label": "Women in our Community"},
                {"value": "2M+", "label": "Journal Entries Written"},
                {"value": "15+", "label": "Years of Sisterhood"},
            ],
        },
    },
    {
        "page_slug": "contact",
        "section_key": "contact_info",
        "section_title": "Get in Touch",
        "display_order": 1,
        "content_json": {
            "email": "hello@sistahology.com",
            "phone": "(555) 123-4567",
            "address": "123 Sisterhood Lane, Suite 100, Seattle, WA 98101",
            "hours": "Monday - Friday: 9am - 5pm PST",
        },
    },
    {
        "page_slug": "contact",
        "section_key": "social_media",
        "section_title": "Connect With Us",
        "display_order": 2,
        "content_json": {
            "platforms": [
                {
                    "name": "Instagram",
                    "handle": "@sistahology",
                    "url": "https://instagram.com/sistahology",
                },
                {
                    "name": "Facebook",
                    "handle": "Sistahology",
                    "url": "https://facebook.com/sistahology",
                },
            ],
        },
    },
    {
        "page_slug": "contact",
        "section_key": "faq_links",
        "section_title": "Frequently Asked Questions",
        "display_order": 3,
        "content_json": {
            "questions": [
                {
                    "question": "Is my journal private?",
                    "answer": "Yes! Your journals are only visible to you.",
                },
                {
                    "question": "How much does it cost?",
                    "answer": "Sistahology is completely free, now and forever.",
                },
                {
                    "question": "How do I reset my password?",
                    "answer": (
                        'Click "Forgot Password" on the login page, and we\'ll send you '
                        "a secure reset link via email."
                    ),
                },
            ],
        },
    },
    {
        "page_slug": "news",
        "section_key": "anniversary_event",
        "section_title": "Anniversary Celebration",
        "display_order": 1,
        "content_json": {
            "icon": "Calendar",
            "date": "September 24th",
            "description": "Celebrating our community since 2009!",
            "cta_text": None,
            "cta_link": None,
        },
    },
    {
        "page_slug": "news",
        "section_key": "book_launch",
        "section_title": "New Book Release",
        "display_order": 2,
        "content_json": {
            "icon": "BookOpen",
            "book_title": "Sistership: A Keep Sake Journal",
            "author": "Andrea M. Guidry (Brooks)",
            "description": (
                "A beautiful journal designed to share between friends and celebrate "
                "sisterhood."
            ),
            "cta_text": "Available Online",
            "cta_link": None,
        },
    },
    {
        "page_slug": "news",
        "section_key": "wellness_products",
        "section_title": "Wellness Products",
        "display_order": 3,
        "content_json": {
            "icon": "Sparkles",
            "collection_name": "Ms. Damn Rona Collection",
            "description": "Luxury wellness candles & incense for your journaling space.",
            "social_handle": "@sistahrona.est2020",
            "social_platform": "Instagram",
        },
    },
    {
        "page_slug": "news",
        "section_key": "upcoming_events",
        "section_title": "Upcoming Events",
        "display_order": 4,
        "content_json": {
            "events": [
                {
                    "date": "February 14, 2024",
                    "title": "Self-Love Writing Workshop",
                    "description": "Writing love letters to yourself.",
                },
                {
                    "date": "April 15, 2024",
                    "title": "Spring Journaling Challenge",
                    "description": "30 days of prompts and community support.",
                },
            ],
        },
    },
    {
        "page_slug": "news",
        "section_key": "community_spotlight",
        "section_title": "Community Spotlight",
        "display_order": 5,
        "content_json": {
            "intro": (
                "Join thousands of women who have made Sistahology their digital "
                "journaling home"
            ),
            "stats": [
                {"icon": "Users", "value": "15,000+", "label": "Active Members"},
                {"icon": "BookOpen", "value": "2M+", "label": "Entries Written"},
                {"icon": "Heart", "value": "15+", "label": "Years Strong"},
            ],
            "cta_text": "Join Our Community",
            "cta_link": "/register",
        },
    },
]

BLOG_POSTS = [
    {
        "slug": "priorities",
        "title": "Priorities",
        "excerpt": (
            "Are you a priority or an option? Don't make someone a priority who makes "
            "you an option."
        ),
        "content_html": (
            "<p>Are you a priority or an option?</p>\n"
            "<p><strong>Don't make someone a priority who makes you an option.</strong></p>\n"
            "<p>Remember, you can't pour from an empty cup.</p>"
        ),
        "published_at": datetime(2010, 3, 15, tzinfo=timezone.utc),
        "status": "published",
    },
    {
        "slug": "loving-yourself-first",
        "title": "Loving Yourself First",
        "excerpt": "Self-love is not selfish. It is where every other love begins.",
        "content_html": (
            "<p>Self-love is not selfish.</p>\n"
            "<p>Take time today to write down three things you love about yourself.</p>"
        ),
        "published_at": datetime(2010, 5, 2, tzinfo=timezone.utc),
        "status": "published",
    },
]

WRITING_PROMPTS = [
    ("What are three things you're grateful for today?", "gratitude"),
    ("Who in your life are you most thankful for, and why?", "gratitude"),
    ("What small moment brought you joy recently?", "gratitude"),
    ("Describe a challenge you overcame this week.", "reflection"),
    ("What did you learn about yourself today?", "reflection"),
    ("What would you tell your younger self about today?", "reflection"),
    ("What would you do if you knew you could not fail?", "goal-setting"),
    ("Where do you see yourself one year from today?", "goal-setting"),
    ("What is one habit you want to develop this month?", "goal-setting"),
    ("Write about a place that makes you feel at peace.", "creativity"),
    ("If you could have dinner with anyone, living or dead, who would it be and why?", "creativity"),
    ("Describe your perfect day from morning to night.", "creativity"),
    ("What are your core values, and are you living in alignment with them?", "self-discovery"),
    ("What does success mean to you?", "self-discovery"),
    ("When do you feel most authentically yourself?", "self-discovery"),
]


def _upsert(db: Session, model, lookup: dict, values: dict) -> bool:
    """Insert a row or refresh its values. Returns ``True`` for inserts."""
    row = db.scalars(select(model).filter_by(**lookup)).first()
    if row is None:
        db.add(model(**lookup, **values))
        return True
    for key, value in values.items():
        setattr(row, key, value)
    return False


def seed_all(db: Session) -> dict:
    """
    Load the initial site content as the service actor.

    Args:
        db (Session): Database session.

    Returns:
        dict: Number of inserted rows per table.
    """
    inserted = {"pages": 0, "site_sections": 0, "blog_posts": 0, "writing_prompts": 0}
    with acting_as(db, SERVICE):
        page_values = {k: v for k, v in HOME_PAGE.items() if k != "slug"}
        inserted["pages"] += _upsert(db, models.Page, {"slug": "home"}, page_values)

        for section in SECTIONS:
            lookup = {"page_slug": section["page_slug"], "section_key": section["section_key"]}
            values = {
                "section_title": section["section_title"],
                "display_order": section["display_order"],
                "content_json": validate_section_content(
                    section["section_key"], section["content_json"]
                ),
            }
            inserted["site_sections"] += _upsert(db, models.SiteSection, lookup, values)

        for post in BLOG_POSTS:
            values = {k: v for k, v in post.items() if k != "slug"}
            inserted["blog_posts"] += _upsert(db, models.BlogPost, {"slug": post["slug"]}, values)

        prompt_count = db.scalar(select(func.count()).select_from(models.WritingPrompt))
        if not prompt_count:
            for text, category in WRITING_PROMPTS:
                db.add(models.WritingPrompt(prompt_text=text, category=category))
            inserted["writing_prompts"] = len(WRITING_PROMPTS)

        db.commit()
    logger.info("Seeded content: %s", inserted)
    return inserted
