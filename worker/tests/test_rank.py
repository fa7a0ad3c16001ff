from rankgrid.core import rank
from rankgrid.models import ResultRecord, TargetBusiness

TARGET = TargetBusiness(place_id="target-pid", name="Acme Plumbing")


def test_uses_matching_records_own_rank_group():
    records = [
        ResultRecord(rank_group=3, title="Bolt Electric", place_id="x"),
        ResultRecord(rank_group=1, title="Something Else", place_id="target-pid"),
        ResultRecord(rank_group=2, title="Zed Roofing", place_id="y"),
    ]

    assert rank.extract_rank(records, TARGET) == 1


def test_falls_back_to_rank_absolute_then_position():
    records = [
        ResultRecord(title="Bolt Electric"),
        ResultRecord(rank_absolute=7, title="Acme Plumbing LLC"),
    ]
    assert rank.extract_rank(records, TARGET) == 7

    records[1].rank_absolute = None
    assert rank.extract_rank(records, TARGET) == 2


def test_first_match_in_provider_order_wins():
    records = [
        ResultRecord(rank_group=4, title="Acme Plumbing"),
        ResultRecord(rank_group=2, place_id="target-pid"),
    ]

    record, found = rank.find_match(records, TARGET)

    assert found == 4
    assert record is records[0]


def test_not_found_returns_none():
    assert rank.extract_rank([], TARGET) is None
    assert rank.extract_rank([ResultRecord(rank_group=1, title="Bolt Electric")], TARGET) is None


def test_target_without_signal_never_matches_top_result():
    records = [ResultRecord(rank_group=1, title="Bolt Electric")]

    assert rank.extract_rank(records, TargetBusiness()) is None
    assert rank.extract_rank(records, None) is None


def test_rank_zero_is_not_treated_as_missing():
    assert rank.record_rank(ResultRecord(rank_group=0, rank_absolute=5), 3) == 0
