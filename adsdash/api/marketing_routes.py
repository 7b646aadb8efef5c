"""AdsDash — Marketing Dashboard Routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from adsdash.analyzer.dashboard import load_dashboard_data
from adsdash.analyzer.filter_options import load_filter_options
from adsdash.analyzer.lookups import enabled_channels
from adsdash.api.deps import parse_ids
from adsdash.config import settings
from adsdash.core.dates import get_yesterday, validate_date
from adsdash.core.errors import ValidationError
from adsdash.core.logging import get_logger
from adsdash.database import get_session
from adsdash.models.dashboard_models import (
    ChannelOut,
    DashboardData,
    DashboardFilters,
    FilterOptions,
)

logger = get_logger("api.marketing")

router = APIRouter(prefix="/api", tags=["Marketing"])


def _filters(
    campaign_ids: Optional[str],
    ad_set_ids: Optional[str],
    ad_ids: Optional[str],
    objective: Optional[str],
) -> DashboardFilters:
    return DashboardFilters(
        campaign_ids=parse_ids(campaign_ids),
        ad_set_ids=parse_ids(ad_set_ids),
        ad_ids=parse_ids(ad_ids),
        objective=(objective or "").strip() or None,
    )


# ── Endpoints ──


@router.get("/marketing", response_model=DashboardData, response_model_by_alias=True)
async def get_marketing(
    date: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    channel: Optional[str] = None,
    campaign_ids: Optional[str] = None,
    ad_set_ids: Optional[str] = None,
    ad_ids: Optional[str] = None,
    objective: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Dashboard data for a day or a range.

    A range applies only when both `since` and `until` are valid; otherwise
    `date`, and failing that, yesterday in the business timezone.
    """
    channel_id = channel or settings.default_channel_id
    filters = _filters(campaign_ids, ad_set_ids, ad_ids, objective)

    valid_since, valid_until = validate_date(since), validate_date(until)
    if valid_since and valid_until:
        return load_dashboard_data(
            session, valid_since, channel_id, until=valid_until, filters=filters
        )
    day = validate_date(date) or get_yesterday()
    return load_dashboard_data(session, day, channel_id, filters=filters)


@router.get("/marketing/filters", response_model=FilterOptions)
async def get_marketing_filters(
    date: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    channel: Optional[str] = None,
    campaign_ids: Optional[str] = None,
    ad_set_ids: Optional[str] = None,
    ad_ids: Optional[str] = None,
    objective: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Campaigns, ad sets, ads and objectives with data in the period."""
    valid_since, valid_until = validate_date(since), validate_date(until)
    if not (valid_since and valid_until):
        valid_since = valid_until = validate_date(date)
    if not valid_since or not valid_until:
        raise ValidationError("Provide since and until, or date (YYYY-MM-DD)")
    if valid_since > valid_until:
        raise ValidationError(f"since ({valid_since}) must not be after until ({valid_until})")

    return load_filter_options(
        session,
        channel or settings.default_channel_id,
        valid_since,
        valid_until,
        _filters(campaign_ids, ad_set_ids, ad_ids, objective),
    )


@router.get("/channels", response_model=List[ChannelOut])
async def list_channels(session: Session = Depends(get_session)):
    """Enabled channels ordered by name."""
    return [ChannelOut(id=c.id, name=c.name) for c in enabled_channels(session)]
