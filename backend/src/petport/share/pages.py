"""Open Graph share pages for social crawlers."""

import html
import json
import re
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

from petport.settings import settings

OG_IMAGE_BASE = "https://pub-a7c2c18b8d6143b9a256105ef44f2da0.r2.dev"

CRAWLER_PATTERN = re.compile(
    r"facebookexternalhit|twitterbot|linkedinbot|slackbot|slack|whatsapp|telegram"
    r"|discord|messenger|skype|pinterest",
    re.IGNORECASE,
)

CACHE_CONTROL = "public, max-age=300"


@dataclass(frozen=True)
class ShareKind:
    """Preview copy and image for one kind of shared page."""
    title: str
    description: str
    image: str
    path: str
    image_alt: str = "PetPort digital pet profile preview"


SHARE_KINDS: dict[str, ShareKind] = {
    "emergency": ShareKind(
        title="🚨 {name}'s Emergency Information - PetPort",
        description="Quick access to {name}'s emergency contact details and important information.",
        image="carehandling-og.png",
        path="profile",
    ),
    "care": ShareKind(
        title="{name}'s Care Instructions - PetPort",
        description=(
            "View {name}'s feeding schedules, routines, allergies, medications, "
            "and care requirements on PetPort."
        ),
        image="carehandling-og.png",
        path="care",
        image_alt="PetPort digital pet care instructions preview",
    ),
    "gallery": ShareKind(
        title="{name}'s Photo Gallery - PetPort",
        description="Check out {name}'s photo gallery on PetPort.",
        image="general-og.png",
        path="gallery",
    ),
    "missing": ShareKind(
        title="MISSING: {name} - Help Bring Them Home | PetPort",
        description=(
            "Help us find {name}! Share this post to spread the word. Every share increases "
            "the chance of a safe return. View full details and contact information."
        ),
        image="og-lostpet.png",
        path="missing",
        image_alt="Missing pet alert from PetPort",
    ),
    "travel": ShareKind(
        title="{name}'s Travel Map - PetPort",
        description="Check out {name}'s travels, with PetPort's interactive map.",
        image="travel-og.png",
        path="profile",
    ),
    "profile": ShareKind(
        title="{name}'s PetPort Profile",
        description="View {name}'s digital pet profile on PetPort.",
        image="general-og.png",
        path="profile",
    ),
}


def is_crawler(user_agent: str | None) -> bool:
    """True for link-preview bots of social and messaging apps."""
    return bool(user_agent and CRAWLER_PATTERN.search(user_agent))


def safe_redirect(redirect: str | None) -> str | None:
    """Decoded redirect target, or None unless it is an http(s) URL."""
    if not redirect:
        return None
    target = unquote(redirect)
    if urlparse(target).scheme not in ("http", "https"):
        return None
    return target


def canonical_url(kind: ShareKind, pet_id: str) -> str:
    return f"{settings.app_origin}/{kind.path}/{pet_id}"


def render_share_page(kind_name: str, pet_id: str, pet_name: str, redirect: str | None = None) -> str:
    """Minimal HTML with Open Graph and Twitter tags.

    With a redirect target, humans who land here are sent on by script.
    """
    kind = SHARE_KINDS[kind_name]
    title = html.escape(kind.title.format(name=pet_name))
    description = html.escape(kind.description.format(name=pet_name))
    image = f"{OG_IMAGE_BASE}/{kind.image}"
    url = html.escape(canonical_url(kind, pet_id))
    image_alt = html.escape(kind.image_alt)

    script = ""
    if redirect:
        # json.dumps quotes the string; "</" is split so the tag cannot close early
        target = json.dumps(redirect).replace("</", "<\\/")
        script = f"""
  <script>
    setTimeout(function() {{ window.location.href = {target}; }}, 100);
  </script>"""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <meta name="description" content="{description}">

  <meta property="og:type" content="website">
  <meta property="og:site_name" content="PetPort">
  <meta property="og:url" content="{url}">
  <meta property="og:title" content="{title}">
  <meta property="og:description" content="{description}">
  <meta property="og:image" content="{image}">
  <meta property="og:image:secure_url" content="{image}">
  <meta property="og:image:type" content="image/png">
  <meta property="og:image:width" content="1200">
  <meta property="og:image:height" content="630">
  <meta property="og:image:alt" content="{image_alt}">

  <meta name="twitter:card" content="summary_large_image">
  <meta name="twitter:url" content="{url}">
  <meta name="twitter:title" content="{title}">
  <meta name="twitter:description" content="{description}">
  <meta name="twitter:image" content="{image}">

  <link rel="canonical" href="{url}">{script}
</head>
<body>
  <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px; text-align: center;">
    <h1>{title}</h1>
    <p>{description}</p>
    <p><a href="{url}">Open in PetPort</a></p>
  </div>
</body>
</html>"""
