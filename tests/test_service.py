"""Tests for BarbeariaService: the facade orchestrates correctly."""

import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path

from barbearia.persistence.event_log import EventKind, EventLog, EventRecord
from barbearia.persistence.state_store import StateStore
from barbearia.policy.resolver import PolicyResolver
from barbearia.service import BarbeariaService

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"
MONTH = "2025-05"
DAY = date(2025, 5, 12)


@pytest.fixture
def resolver() -> PolicyResolver:
    return PolicyResolver.from_config_dir(CONFIG_DIR)


@pytest.fixture
def service(resolver: PolicyResolver) -> BarbeariaService:
    svc = BarbeariaService(resolver)
    for barber_id, name in (("a", "Alice"), ("b", "Bruno"), ("c", "Carla")):
        svc.register_barber(barber_id, name)
    svc.register_service("corte", "Corte", minutes_per_unit=30)
    svc.register_service("barba", "Barba", minutes_per_unit=20)
    return svc


class TestRoster:
    def test_register_blank_fails(self, service: BarbeariaService) -> None:
        result = service.register_barber("", "Nobody")
        assert not result.success

    def test_deactivate_removes_from_queue(self, service: BarbeariaService) -> None:
        assert service.set_barber_active("c", False).success
        ids = [r["barber_id"] for r in service.queue(MONTH).data["ranking"]]
        assert ids == ["a", "b"]

    def test_deactivate_unknown(self, service: BarbeariaService) -> None:
        result = service.set_barber_active("zz", False)
        assert not result.success
        assert result.data["error_kind"] == "barber_not_found"

    def test_register_service_invalid_minutes(self, service: BarbeariaService) -> None:
        assert not service.register_service("x", "X", minutes_per_unit=-5).success


class TestQueue:
    def test_example_scenario(self, service: BarbeariaService) -> None:
        for _ in range(3):
            assert service.record_service("a", DAY, MONTH).success
        service.record_service("b", DAY, MONTH)
        service.pass_turn("b", DAY, MONTH)

        data = service.queue(MONTH).data
        assert [r["barber_id"] for r in data["ranking"]] == ["c", "b", "a"]
        assert data["due_barber_ids"] == ["c"]
        assert data["total_units"] == 5

    def test_read_after_write(self, service: BarbeariaService) -> None:
        before = service.ranking(MONTH)[0]
        assert service.record_service(before.barber_id, DAY, MONTH).success
        after = service.barber_position(before.barber_id, MONTH).data
        assert after["total_count"] == 1

    def test_unknown_barber(self, service: BarbeariaService) -> None:
        result = service.pass_turn("zz", DAY, MONTH)
        assert not result.success
        assert result.data == {"error_kind": "barber_not_found", "identifier": "zz"}

    def test_back_dated_event_refused(self, service: BarbeariaService) -> None:
        result = service.record_service("a", date(2025, 4, 30), MONTH)
        assert not result.success
        assert result.data["error_kind"] == "invalid_month"
        assert service.status()["events"]["total"] == 0

    def test_bad_month_in_queue(self, service: BarbeariaService) -> None:
        assert not service.queue("2025-13").success

    def test_correction(self, service: BarbeariaService) -> None:
        service.record_service("a", DAY, MONTH)
        service.record_service("a", DAY, MONTH)
        assert service.correct_services("a", -1, DAY, MONTH).success
        assert service.barber_position("a", MONTH).data["services_count"] == 1

    def test_over_correction_refused(self, service: BarbeariaService) -> None:
        service.record_service("a", DAY, MONTH)
        result = service.correct_services("a", -2, DAY, MONTH)
        assert not result.success
        assert service.barber_position("a", MONTH).data["services_count"] == 1

    def test_zero_correction_refused(self, service: BarbeariaService) -> None:
        assert not service.correct_services("a", 0, DAY, MONTH).success

    def test_padded_ids_resolve(self, service: BarbeariaService) -> None:
        assert service.record_service(" a ", DAY, MONTH).data["barber_id"] == "a"
        assert service.pass_turn("b ", DAY, MONTH).success
        assert service.correct_services(" a", -1, DAY, MONTH).success
        assert service.barber_position(" b ", MONTH).data["days_passed"] == 1


class TestCommission:
    def test_example_scenario(self, service: BarbeariaService) -> None:
        service.log_service("a", "corte", DAY, quantity=4)
        service.log_service("b", "barba", DAY, quantity=4)
        result = service.commission_report(MONTH, "1000", "0.40")
        assert result.success
        rows = {r["barber_id"]: r for r in result.data["results"]}
        assert rows["a"]["commission"] == "240.00"
        assert rows["b"]["commission"] == "160.00"
        assert rows["c"]["commission"] == "0.00"
        assert result.data["total_minutes"] == 200

    def test_default_percentage_from_policy(self, service: BarbeariaService) -> None:
        service.log_service("a", "corte", DAY)
        result = service.commission_report(MONTH, Decimal("100"))
        assert result.data["commission_pct"] == "0.40"
        assert result.data["total_commission"] == "40.00"

    def test_log_unknown_service(self, service: BarbeariaService) -> None:
        result = service.log_service("a", "massagem", DAY)
        assert not result.success
        assert result.data["error_kind"] == "unknown_service"

    def test_log_zero_quantity(self, service: BarbeariaService) -> None:
        assert not service.log_service("a", "corte", DAY, quantity=0).success

    def test_bad_revenue(self, service: BarbeariaService) -> None:
        assert not service.commission_report(MONTH, "lots").success

    def test_commission_for(self, service: BarbeariaService) -> None:
        service.log_service("a", "corte", DAY, quantity=4)
        service.log_service("b", "barba", DAY, quantity=4)
        result = service.commission_for("b", MONTH, "1000", "0.40")
        assert result.data["commission"] == "160.00"
        assert not service.commission_for("zz", MONTH, "1000").success

    def test_csv(self, service: BarbeariaService) -> None:
        service.log_service("a", "corte", DAY)
        result = service.commission_csv(MONTH, "100")
        assert result.data["filename"] == "comissoes-2025-05.csv"
        assert result.data["csv"].startswith("barber_id,barber,month")

    def test_correction_beyond_logged_refused(self, service: BarbeariaService) -> None:
        service.log_service("b", "corte", DAY, quantity=2)
        result = service.log_service("a", "corte", DAY, quantity=-1)
        assert not result.success
        assert service.status()["events"]["total"] == 1
        report = service.commission_report(MONTH, "1000", "0.40")
        assert report.success
        rows = {r["barber_id"]: r for r in report.data["results"]}
        assert rows["b"]["commission"] == "400.00"

    def test_correction_against_other_service_refused(self, service: BarbeariaService) -> None:
        service.log_service("a", "corte", DAY, quantity=2)
        assert not service.log_service("a", "barba", DAY, quantity=-1).success

    def test_correction_within_logged_accepted(self, service: BarbeariaService) -> None:
        service.log_service("a", "corte", DAY, quantity=3)
        assert service.log_service("a", "corte", DAY, quantity=-1).success
        result = service.commission_for("a", MONTH, "100", "1")
        assert result.data["minutes_worked"] == 60

    def test_non_subscription_services_ignored_by_default(
        self, service: BarbeariaService,
    ) -> None:
        service.register_service("quimica", "Química", minutes_per_unit=90, is_subscription=False)
        service.log_service("a", "corte", DAY)
        service.log_service("b", "quimica", DAY, quantity=2)
        result = service.commission_report(MONTH, "100", "1")
        rows = {r["barber_id"]: r for r in result.data["results"]}
        assert result.data["total_minutes"] == 30
        assert rows["a"]["commission"] == "100.00"
        assert rows["b"]["commission"] == "0.00"

    def test_padded_ids_resolve_for_commission(self, service: BarbeariaService) -> None:
        assert service.log_service(" a ", " corte ", DAY).success
        assert service.commission_for(" a ", MONTH, "100", "1").data["minutes_worked"] == 30


class TestCommissionHistory:
    def test_months_oldest_first(self, service: BarbeariaService) -> None:
        service.log_service("a", "corte", date(2025, 4, 20))
        service.log_service("a", "corte", DAY)
        result = service.commission_history(
            MONTH, months=3, revenue_by_month={"2025-04": "500", "2025-05": "1000"},
        )
        assert result.success
        history = result.data["history"]
        assert [h["month"] for h in history] == ["2025-03", "2025-04", "2025-05"]
        assert history[0]["total_commission"] == "0.00"
        assert history[1]["total_commission"] == "200.00"
        assert history[2]["pool_value"] == "400.00"
        assert result.data["total_commission"] == "600.00"

    def test_history_crosses_year(self, service: BarbeariaService) -> None:
        result = service.commission_history("2025-01", months=2)
        assert [h["month"] for h in result.data["history"]] == ["2024-12", "2025-01"]

    def test_bad_revenue_month_refused(self, service: BarbeariaService) -> None:
        result = service.commission_history(MONTH, revenue_by_month={"2025-5": "10"})
        assert not result.success
        assert result.data["error_kind"] == "invalid_month"

    def test_zero_months_refused(self, service: BarbeariaService) -> None:
        assert not service.commission_history(MONTH, months=0).success


class TestDailyActivity:
    def test_day_sheet(self, service: BarbeariaService) -> None:
        service.record_service("b", DAY, MONTH)
        service.record_service("b", DAY, MONTH)
        service.pass_turn("a", DAY, MONTH)
        service.log_service("b", "corte", DAY, quantity=2)
        service.log_service("b", "barba", DAY)
        service.record_service("c", date(2025, 5, 13), MONTH)

        data = service.daily_activity(DAY).data
        assert data["date"] == "2025-05-12"
        assert [row["barber_id"] for row in data["barbers"]] == ["a", "b"]
        alice, bruno = data["barbers"]
        assert alice["days_passed"] == 1
        assert alice["services_count"] == 0
        assert bruno["services_count"] == 2
        assert bruno["performed"] == {"corte": 2, "barba": 1}

    def test_corrections_net_out(self, service: BarbeariaService) -> None:
        service.record_service("a", DAY, MONTH)
        service.correct_services("a", -1, DAY, MONTH)
        assert service.daily_activity(DAY).data["barbers"][0]["services_count"] == 0

    def test_quiet_day(self, service: BarbeariaService) -> None:
        assert service.daily_activity(DAY).data["barbers"] == []


class TestPersistence:
    def test_state_and_events_survive_restart(self, resolver: PolicyResolver, tmp_path: Path) -> None:
        def _build() -> BarbeariaService:
            return BarbeariaService(
                resolver,
                event_log=EventLog(storage_path=tmp_path / "events.jsonl"),
                state_store=StateStore(tmp_path / "state.json"),
            )

        first = _build()
        first.register_barber("a", "Alice")
        first.register_barber("b", "Bruno")
        first.record_service("a", DAY, MONTH)

        second = _build()
        assert [b.barber_id for b in second.barbers()] == ["a", "b"]
        assert second.queue(MONTH).data["due_barber_ids"] == ["b"]
        # Event ids continue after restart
        assert second.pass_turn("b", DAY, MONTH).data["event_id"] == "EVT-00000002"

    def test_failed_service_write_keeps_event_ids(self, resolver: PolicyResolver) -> None:
        class FailOnServiceLog(EventLog):
            """EventLog that raises on SERVICE_PERFORMED records only."""
            def append(self, event: EventRecord) -> None:
                if event.event_kind == EventKind.SERVICE_PERFORMED:
                    raise OSError("Simulated service write failure")
                super().append(event)

        svc = BarbeariaService(resolver, event_log=FailOnServiceLog())
        svc.register_barber("a", "Alice")
        svc.register_service("corte", "Corte", minutes_per_unit=30)

        result = svc.log_service("a", "corte", DAY)
        assert not result.success
        assert "Event log failure" in result.errors[0]
        assert svc.record_service("a", DAY, MONTH).data["event_id"] == "EVT-00000001"


class TestStatus:
    def test_status_structure(self, service: BarbeariaService) -> None:
        service.record_service("a", DAY, MONTH)
        status = service.status()
        assert status["barbers"] == {"total": 3, "active": 3}
        assert status["services"] == 2
        assert status["events"]["months"] == [MONTH]
        assert status["events"]["last_event_id"] == "EVT-00000001"
        assert status["policy"]["rotation"]["tie_break"] == "name"
