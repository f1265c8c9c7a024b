"""License tiers and their default rule sets.

Three tiers are sold: Basic, Premium, Unlimited. A numeric limit of 0 means
unlimited. Each tier can have several template versions; issuance always
uses the highest active version, and every issued license keeps a deep copy
of the limits it was sold under.

Templates are seeded explicitly (``label seed-templates``). Issuance never
synthesizes a template on the fly.
"""

import copy
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.common.exceptions import InvalidTierError, TemplateUnavailableError
from label_engine.licensing.models import LicenseTemplateModel

TIERS = ("Basic", "Premium", "Unlimited")

LIMIT_FIELDS = (
    "max_streams",
    "max_monetized_videos",
    "max_physical_copies",
    "content_id_allowed",
    "for_profit_performances",
    "radio_broadcasting",
)

_DEFAULT_SPLIT = {"producer": 50, "licensee": 50}

DEFAULT_TEMPLATES: list[dict[str, Any]] = [
    {
        "template_id": "basic-v1",
        "tier": "Basic",
        "display_name": "Licencia Básica",
        "version": 1,
        "body": "Licencia básica para uso no comercial con limitaciones en reproducciones streaming.",
        "limits": {
            "max_streams": 50_000,
            "max_monetized_videos": 1,
            "max_physical_copies": 0,
            "content_id_allowed": False,
            "for_profit_performances": False,
            "radio_broadcasting": False,
        },
    },
    {
        "template_id": "premium-v1",
        "tier": "Premium",
        "display_name": "Licencia Premium",
        "version": 1,
        "body": (
            "Licencia premium para uso comercial con límites extendidos en "
            "reproducciones y distribución física."
        ),
        "limits": {
            "max_streams": 500_000,
            "max_monetized_videos": 1,
            "max_physical_copies": 10_000,
            "content_id_allowed": False,
            "for_profit_performances": True,
            "radio_broadcasting": True,
        },
    },
    {
        "template_id": "unlimited-v1",
        "tier": "Unlimited",
        "display_name": "Licencia Unlimited",
        "version": 1,
        "body": (
            "Licencia ilimitada para uso comercial sin restricciones en "
            "reproducciones, distribución y monetización."
        ),
        "limits": {
            "max_streams": 0,
            "max_monetized_videos": 0,
            "max_physical_copies": 0,
            "content_id_allowed": False,
            "for_profit_performances": True,
            "radio_broadcasting": True,
        },
    },
]


def validate_tier(tier: str) -> str:
    if tier not in TIERS:
        raise InvalidTierError(tier)
    return tier


def validate_split(split: dict[str, Any]) -> None:
    """Producer and licensee shares must be non-negative and add up to 100."""
    producer = split.get("producer", 0)
    licensee = split.get("licensee", 0)
    if producer < 0 or licensee < 0 or producer + licensee != 100:
        raise ValueError(f"Publishing split must total 100, got {producer}/{licensee}")


def format_limit(value: int) -> str:
    """Render a numeric limit for documents; 0 reads as unlimited."""
    if value == 0:
        return "Ilimitado"
    return f"{value:,}".replace(",", ".")


async def seed_templates(
    session: AsyncSession,
    producer_name: str = "LilBru",
    jurisdiction: str = "España",
) -> list[LicenseTemplateModel]:
    """Insert the default templates that are not present yet. Returns the created rows."""
    existing = set((await session.execute(select(LicenseTemplateModel.template_id))).scalars().all())

    created = []
    for data in DEFAULT_TEMPLATES:
        if data["template_id"] in existing:
            continue
        template = LicenseTemplateModel(
            template_id=data["template_id"],
            tier=data["tier"],
            display_name=data["display_name"],
            version=data["version"],
            body=data["body"],
            limits=copy.deepcopy(data["limits"]),
            publishing_split=dict(_DEFAULT_SPLIT),
            credits_required=f"Prod. by {producer_name}",
            jurisdiction=jurisdiction,
            active=True,
        )
        session.add(template)
        created.append(template)

    await session.flush()
    return created


async def create_template_version(
    session: AsyncSession,
    tier: str,
    limits: dict[str, Any],
    display_name: str | None = None,
    body: str = "",
    publishing_split: dict[str, Any] | None = None,
    credits_required: str = "",
    jurisdiction: str = "",
) -> LicenseTemplateModel:
    """Add a new version of a tier's template. Earlier versions stay readable."""
    validate_tier(tier)
    split = publishing_split or dict(_DEFAULT_SPLIT)
    validate_split(split)

    latest = await session.execute(
        select(LicenseTemplateModel.version)
        .where(LicenseTemplateModel.tier == tier)
        .order_by(LicenseTemplateModel.version.desc())
        .limit(1)
    )
    version = (latest.scalar_one_or_none() or 0) + 1

    template = LicenseTemplateModel(
        template_id=f"{tier.lower()}-v{version}",
        tier=tier,
        display_name=display_name or f"Licencia {tier}",
        version=version,
        body=body,
        limits=copy.deepcopy(limits),
        publishing_split=split,
        credits_required=credits_required,
        jurisdiction=jurisdiction,
        active=True,
    )
    session.add(template)
    await session.flush()
    return template


async def resolve_active_template(session: AsyncSession, tier: str) -> LicenseTemplateModel:
    """Highest-version active template for ``tier``."""
    validate_tier(tier)
    result = await session.execute(
        select(LicenseTemplateModel)
        .where(LicenseTemplateModel.tier == tier, LicenseTemplateModel.active.is_(True))
        .order_by(LicenseTemplateModel.version.desc())
        .limit(1)
    )
    template = result.scalar_one_or_none()
    if template is None:
        raise TemplateUnavailableError(f"No active license template for tier {tier}")
    return template
