import sys
import os
import pytest

# Add backend to path so we can import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from caching.ttl_policy import CacheTTL, classify_volatility, select_ttl

def test_ttl_general_default():
    """Verify that an unfiltered request gets the general lifetime."""
    result = classify_volatility({"model": "sonar-pro"})
    assert result["classification"] == "general"
    assert result["ttl"] == CacheTTL.GENERAL == 30 * 60

def test_ttl_deep_research_longest():
    """Verify that deep research requests get the longest lifetime."""
    assert select_ttl({"model": "sonar-deep-research"}) == CacheTTL.DEEP_RESEARCH == 2 * 60 * 60

def test_ttl_deep_research_wins_over_day_filter():
    """Verify that the deep research rule is checked before recency."""
    result = classify_volatility({"model": "sonar-deep-research", "search_recency_filter": "last_day"})
    assert result["classification"] == "deep_research"

@pytest.mark.parametrize("recency", ["last_day", "day", "DAY"])
def test_ttl_last_day_shortest(recency):
    """Verify that day-filtered requests get the volatile lifetime in either spelling."""
    result = classify_volatility({"model": "sonar-pro", "search_recency_filter": recency})
    assert result["classification"] == "volatile"
    assert result["ttl"] == CacheTTL.VOLATILE == 5 * 60

def test_ttl_day_filter_inside_web_search_options():
    """Verify that the nested web_search_options recency filter is honoured."""
    request = {"model": "sonar", "web_search_options": {"search_recency_filter": "last_day"}}
    assert select_ttl(request) == CacheTTL.VOLATILE

@pytest.mark.parametrize("recency", ["last_week", "week"])
def test_ttl_last_week_matches_general(recency):
    """Verify that week-filtered requests currently keep the general lifetime."""
    result = classify_volatility({"model": "sonar-pro", "search_recency_filter": recency})
    assert result["classification"] == "recent"
    assert result["ttl"] == CacheTTL.GENERAL

def test_ttl_month_filter_is_general():
    assert select_ttl({"model": "sonar-pro", "search_recency_filter": "month"}) == CacheTTL.GENERAL

def test_ttl_ordering():
    """Verify the relative ordering of the lifetime table."""
    assert CacheTTL.VOLATILE < CacheTTL.GENERAL < CacheTTL.TECHNICAL < CacheTTL.DEEP_RESEARCH
    assert CacheTTL.ATTACHMENT == CacheTTL.TECHNICAL

def test_ttl_nested_day_filter_beats_top_level_week():
    """Verify that a last-day filter in either place wins over a last-week filter."""
    request = {
        "model": "sonar-pro",
        "search_recency_filter": "last_week",
        "web_search_options": {"search_recency_filter": "last_day"},
    }
    result = classify_volatility(request)
    assert result["classification"] == "volatile"
    assert result["ttl"] == CacheTTL.VOLATILE
    assert result["recency_filters"] == ["last_day", "last_week"]

def test_ttl_top_level_month_with_nested_day_is_volatile():
    request = {"model": "sonar", "search_recency_filter": "month",
               "web_search_options": {"search_recency_filter": "day"}}
    assert select_ttl(request) == CacheTTL.VOLATILE
