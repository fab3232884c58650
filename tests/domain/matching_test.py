from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.ledger import DiagnosticKind, Lot, TransactionId
from domain.lots import build_lots
from domain.matching import CostBasisMethod, LotMatcher, apply_method, match_sells
from tests.helpers.time_utils import buy, sell, utc


def _lots() -> list[Lot]:
    # Input order differs from both date and unit-cost order.
    return build_lots(
        [
            buy("1", "20000", on=utc(2023, 3, 1), tx_id="b3"),
            buy("1", "10000", on=utc(2023, 1, 1), tx_id="b1"),
            buy("1", "30000", on=utc(2023, 2, 1), tx_id="b2"),
        ]
    ).lots


def _sources(lots: list[Lot]) -> list[str]:
    return [lot.source_id for lot in lots]


@pytest.mark.parametrize(
    ("method", "expected_order"),
    [
        (CostBasisMethod.FIFO, ["b1", "b2", "b3"]),
        (CostBasisMethod.LIFO, ["b3", "b2", "b1"]),
        (CostBasisMethod.HIFO, ["b2", "b3", "b1"]),
    ],
)
def test_apply_method_orders_lots(method: CostBasisMethod, expected_order: list[str]) -> None:
    assert _sources(apply_method(_lots(), method)) == expected_order


@pytest.mark.parametrize(
    ("method", "consumed"),
    [
        (CostBasisMethod.FIFO, "b1"),
        (CostBasisMethod.LIFO, "b3"),
        (CostBasisMethod.HIFO, "b2"),
    ],
)
def test_sell_consumes_lot_selected_by_method(method: CostBasisMethod, consumed: str) -> None:
    lots = _lots()
    source_by_id = {lot.id: lot.source_id for lot in lots}

    result = match_sells(apply_method(lots, method), [sell("0.5", "40000", on=utc(2023, 7, 1), tx_id="s1")])

    assert len(result.realized_gains) == 1
    record = result.realized_gains[0]
    assert source_by_id[record.lot_id] == consumed
    assert record.amount_sold == Decimal("0.5")
    assert record.proceeds_allocated == Decimal("20000")

    remaining = {lot.source_id: lot for lot in result.remaining_lots}
    assert remaining[consumed].amount == Decimal("0.5")
    assert sum(lot.amount for lot in result.remaining_lots) == Decimal("2.5")


def test_stable_order_for_equal_keys() -> None:
    lots = build_lots(
        [
            buy("1", "10000", on=utc(2023, 1, 1), tx_id="first"),
            buy("1", "10000", on=utc(2023, 1, 1), tx_id="second"),
        ]
    ).lots

    for method in CostBasisMethod:
        assert _sources(apply_method(lots, method)) == ["first", "second"]


def test_parse_accepts_aliases_and_rejects_unknown() -> None:
    assert CostBasisMethod.parse("fifo") == CostBasisMethod.FIFO
    assert CostBasisMethod.parse(" Lifo ") == CostBasisMethod.LIFO
    assert CostBasisMethod.parse("average_cost") == CostBasisMethod.HIFO
    assert CostBasisMethod.parse("Average Cost") == CostBasisMethod.HIFO
    assert CostBasisMethod.parse(CostBasisMethod.HIFO) == CostBasisMethod.HIFO

    with pytest.raises(ValueError, match="Unknown cost basis method"):
        CostBasisMethod.parse("weighted")


def test_partial_sale_keeps_unit_cost_and_scales_basis() -> None:
    lots = build_lots([buy("1", "10000", on=utc(2023, 1, 1), tx_id="b1")]).lots

    result = match_sells(lots, [sell("0.4", "20000", on=utc(2024, 2, 1), tx_id="s1")])

    assert len(result.remaining_lots) == 1
    remaining = result.remaining_lots[0]
    assert remaining.id == lots[0].id
    assert remaining.amount == Decimal("0.6")
    assert remaining.cost_basis == Decimal("6000")
    assert remaining.unit_cost == Decimal("10000")
    assert remaining.cost_basis / remaining.amount == Decimal("10000")

    record = result.realized_gains[0]
    assert record.cost_basis_allocated == Decimal("4000")
    assert record.proceeds_allocated == Decimal("8000")
    assert record.gain == Decimal("4000")
    assert record.is_long_term is True
    assert record.sale_id == "s1"


def test_sell_spanning_lots_creates_record_per_lot() -> None:
    lots = apply_method(_lots(), CostBasisMethod.FIFO)

    result = match_sells(lots, [sell("1.5", "40000", on=utc(2023, 7, 1))])

    assert [record.amount_sold for record in result.realized_gains] == [Decimal("1"), Decimal("0.5")]
    assert [record.cost_basis_allocated for record in result.realized_gains] == [Decimal("10000"), Decimal("15000")]
    assert _sources(result.remaining_lots) == ["b2", "b3"]
    assert result.remaining_lots[0].amount == Decimal("0.5")


def test_sells_are_processed_chronologically() -> None:
    lots = build_lots(
        [
            buy("1", "10000", on=utc(2023, 1, 1), tx_id="b1"),
            buy("1", "20000", on=utc(2023, 2, 1), tx_id="b2"),
        ]
    ).lots
    source_by_id = {lot.id: lot.source_id for lot in lots}
    sells = [
        sell("1", "30000", on=utc(2023, 6, 1), tx_id="late"),
        sell("1", "25000", on=utc(2023, 4, 1), tx_id="early"),
    ]

    result = match_sells(apply_method(lots, CostBasisMethod.FIFO), sells)

    assert [(record.sale_id, source_by_id[record.lot_id]) for record in result.realized_gains] == [
        ("early", "b1"),
        ("late", "b2"),
    ]


def test_holding_period_boundary() -> None:
    lots = build_lots([buy("2", "20000", on=utc(2023, 1, 1))]).lots
    sells = [
        sell("1", "15000", on=utc(2023, 12, 31), tx_id="short"),
        sell("1", "15000", on=utc(2024, 1, 1), tx_id="long"),
    ]

    result = match_sells(lots, sells)

    terms = {record.sale_id: record.is_long_term for record in result.realized_gains}
    assert terms == {"short": False, "long": True}


def test_custom_long_term_days() -> None:
    lots = build_lots([buy("1", "100", on=utc(2023, 1, 1))]).lots

    result = LotMatcher(long_term_days=30).match(lots, [sell("1", "200", on=utc(2023, 1, 31))])

    assert result.realized_gains[0].is_long_term is True


def test_oversell_truncates_and_reports_diagnostic() -> None:
    lots = build_lots([buy("1", "10000", on=utc(2023, 1, 1))]).lots

    result = match_sells(lots, [sell("1.5", "20000", on=utc(2023, 2, 1), tx_id="s1")])

    assert result.remaining_lots == []
    assert sum(record.amount_sold for record in result.realized_gains) == Decimal("1")
    assert len(result.diagnostics) == 1
    diagnostic = result.diagnostics[0]
    assert diagnostic.kind == DiagnosticKind.OVERSOLD
    assert diagnostic.transaction_id == TransactionId("s1")
    assert diagnostic.quantity == Decimal("0.5")


def test_sell_without_lots_is_oversold() -> None:
    result = match_sells([], [sell("0.1", "20000")])

    assert result.realized_gains == []
    assert [diag.kind for diag in result.diagnostics] == [DiagnosticKind.OVERSOLD]


def test_dust_remainders_are_dropped() -> None:
    lots = build_lots([buy("1", "10000", on=utc(2023, 1, 1))]).lots

    result = match_sells(lots, [sell("0.9999999995", "20000", on=utc(2023, 2, 1))])

    assert result.remaining_lots == []
    assert result.diagnostics == []


def test_dust_oversell_is_not_reported() -> None:
    lots = build_lots([buy("1", "10000", on=utc(2023, 1, 1))]).lots

    result = match_sells(lots, [sell("1.0000000005", "20000", on=utc(2023, 2, 1))])

    assert result.remaining_lots == []
    assert result.diagnostics == []


def test_incomplete_sell_is_skipped() -> None:
    lots = build_lots([buy("1", "10000", on=utc(2023, 1, 1))]).lots
    incomplete = sell("0.5", "20000", on=utc(2023, 2, 1), tx_id="bad").model_copy(update={"unit_price": None})

    result = match_sells(lots, [incomplete])

    assert result.realized_gains == []
    assert result.remaining_lots[0].amount == Decimal("1")
    assert [(diag.kind, diag.transaction_id) for diag in result.diagnostics] == [
        (DiagnosticKind.SKIPPED_RECORD, "bad")
    ]


def test_sell_fees_are_summed() -> None:
    lots = build_lots([buy("1", "10000", on=utc(2023, 1, 1))]).lots

    result = match_sells(lots, [sell("0.1", "20000", fee="5"), sell("0.1", "20000", fee="7.5")])

    assert result.sell_fees == Decimal("12.5")


def test_input_lots_are_not_modified() -> None:
    lots = apply_method(_lots(), CostBasisMethod.FIFO)
    before = [lot.model_dump() for lot in lots]

    first = match_sells(lots, [sell("2", "40000", on=utc(2023, 7, 1))])
    second = match_sells(lots, [sell("2", "40000", on=utc(2023, 7, 1))])

    assert [lot.model_dump() for lot in lots] == before
    assert first.model_dump() == second.model_dump()


def test_mixed_naive_and_aware_lot_dates_can_be_ordered() -> None:
    naive = Lot(
        source_id=TransactionId("naive"),
        amount=Decimal("1"),
        acquisition_date=datetime(2023, 2, 1),
        cost_basis=Decimal("100"),
        unit_cost=Decimal("100"),
    )
    aware = Lot(
        source_id=TransactionId("aware"),
        amount=Decimal("1"),
        acquisition_date=datetime(2023, 1, 31, 23, tzinfo=timezone(timedelta(hours=-5))),
        cost_basis=Decimal("100"),
        unit_cost=Decimal("100"),
    )

    assert naive.acquisition_date.tzinfo == timezone.utc
    assert aware.acquisition_date == datetime(2023, 2, 1, 4, tzinfo=timezone.utc)
    assert _sources(apply_method([aware, naive], CostBasisMethod.FIFO)) == ["naive", "aware"]
