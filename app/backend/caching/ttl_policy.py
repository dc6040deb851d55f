from typing import Any, Dict, Mapping, Set


class CacheTTL:
    """
    Time-to-live per result volatility, in seconds.

    Upstream answers are not deterministic, so lifetimes are tuned to how fast
    the underlying subject matter goes stale.
    """
    TECHNICAL = 60 * 60            # stable technical information
    GENERAL = 30 * 60              # general knowledge queries
    VOLATILE = 5 * 60              # news, prices, anything from the last day
    DEEP_RESEARCH = 2 * 60 * 60    # expensive multi-step research reports
    ATTACHMENT = 60 * 60           # file attachment content


DEEP_RESEARCH_MODELS = {"sonar-deep-research"}

_LAST_DAY = {"last_day", "day"}
_LAST_WEEK = {"last_week", "week"}


def _recency_filters(request: Mapping[str, Any]) -> Set[str]:
    """Recency filters from the top level and from web_search_options."""
    web_options = request.get("web_search_options") or {}
    values = (request.get("search_recency_filter"), web_options.get("search_recency_filter"))
    return {str(v).lower() for v in values if v}


def classify_volatility(request: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Classifies an upstream request by how long its answer stays valid.

    Rules are checked top to bottom and the first match wins:
    deep research models are expensive to recompute and comparatively stable,
    a last-day recency filter means fast moving content, and a last-week filter
    currently keeps the general lifetime.
    """
    recency = _recency_filters(request)

    if request.get("model") in DEEP_RESEARCH_MODELS:
        classification = "deep_research"
        ttl = CacheTTL.DEEP_RESEARCH
    elif recency & _LAST_DAY:
        classification = "volatile"
        ttl = CacheTTL.VOLATILE
    elif recency & _LAST_WEEK:
        # TODO: confirm whether week-filtered results should sit between VOLATILE and GENERAL
        classification = "recent"
        ttl = CacheTTL.GENERAL
    else:
        classification = "general"
        ttl = CacheTTL.GENERAL

    return {
        "classification": classification,
        "ttl": ttl,
        "recency_filters": sorted(recency),
    }


def select_ttl(request: Mapping[str, Any]) -> float:
    return classify_volatility(request)["ttl"]
