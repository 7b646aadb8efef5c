"""AdsDash — Dashboard Filter Options.

Lists the campaigns, ad sets, ads and objectives that have at least one
metric row in the selected period, narrowed by the filters already applied.
"""

from sqlmodel import Session

from adsdash.analyzer.lookups import ad_lookup, ad_set_rows, campaign_lookup, load_metric_rows
from adsdash.core.logging import get_logger
from adsdash.models.dashboard_models import (
    AdOption,
    AdSetOption,
    CampaignOption,
    DashboardFilters,
    FilterOptions,
)

logger = get_logger("analyzer.filters")


def load_filter_options(
    session: Session,
    channel_id: str,
    since: str,
    until: str,
    filters: DashboardFilters | None = None,
) -> FilterOptions:
    filters = filters or DashboardFilters()
    pairs = {
        (r["campaign_id"], r["ad_id"])
        for r in load_metric_rows(session, channel_id, since, until)
    }
    campaign_ids = {c for c, _ in pairs}
    ad_ids = {a for _, a in pairs}

    # Campaign and ad selections narrow each other
    if filters.campaign_ids:
        campaign_ids &= set(filters.campaign_ids)
        ad_ids = {a for c, a in pairs if c in campaign_ids and a in ad_ids}
    if filters.ad_ids:
        ad_ids &= set(filters.ad_ids)
        campaign_ids = {c for c, a in pairs if a in ad_ids and c in campaign_ids}

    if not campaign_ids and not ad_ids:
        return FilterOptions()

    campaigns = [
        CampaignOption(id=cid, name=info["name"], objective=info["objective"] or None)
        for cid, info in campaign_lookup(session, campaign_ids).items()
    ]
    if filters.objective:
        campaigns = [c for c in campaigns if c.objective == filters.objective]
    campaigns.sort(key=lambda c: (c.name, c.id))
    allowed_campaigns = {c.id for c in campaigns}

    ads = [
        AdOption(
            id=aid,
            name=info["name"],
            campaign_id=info["campaign_id"],
            ad_set_id=info["ad_set_id"],
        )
        for aid, info in ad_lookup(session, ad_ids).items()
        if info["campaign_id"] in allowed_campaigns
    ]
    if filters.ad_set_ids:
        wanted = set(filters.ad_set_ids)
        ads = [a for a in ads if a.ad_set_id in wanted]
    ads.sort(key=lambda a: (a.name, a.id))

    ad_sets = [
        AdSetOption(**row)
        for row in ad_set_rows(
            session, {a.ad_set_id for a in ads if a.ad_set_id}, allowed_campaigns
        )
    ]
    objectives = sorted({c.objective for c in campaigns if c.objective})

    logger.info(
        f"Filter options: {len(campaigns)} campaigns, {len(ad_sets)} ad sets, {len(ads)} ads",
        extra={"channel_id": channel_id, "since": since, "until": until},
    )
    return FilterOptions(
        campaigns=campaigns, ad_sets=ad_sets, ads=ads, objectives=objectives
    )
