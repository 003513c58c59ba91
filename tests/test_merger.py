"""Tests for layerkit.integration.merger — pure, idempotent merge."""

from __future__ import annotations

from layerkit.errors import IntegrationError, PartialIntegration, SharedFileUnrecognized
from layerkit.integration.container import ContainerModel, parse_container
from layerkit.integration.detector import (
    MemorySnapshot,
    ProjectInventory,
    default_layer_rules,
    detect_features,
)
from layerkit.integration.entrypoint import EntrypointModel, parse_entrypoint
from layerkit.integration.merger import (
    FeatureState,
    MergeResult,
    UnrecognizedFile,
    merge,
    withdraw,
)

MODULE = "github.com/acme/shop"

FRESH_PATH = [
    FeatureState.DETECTED,
    FeatureState.NEEDS_CONTAINER_BINDING,
    FeatureState.BOUND,
    FeatureState.NEEDS_ROUTE_REGISTRATION,
    FeatureState.REGISTERED,
]


def _inventory(
    *names: str, domain_only: tuple[str, ...] = (), grpc_only: tuple[str, ...] = ()
) -> ProjectInventory:
    files: dict[str, str | None] = {}
    for name in (*names, *domain_only, *grpc_only):
        files[f"domain/{name.lower()}.go"] = f"package domain\n\ntype {name} struct {{\n}}\n"
    for name in names:
        files[f"handler/http/{name.lower()}_handler.go"] = None
    for name in grpc_only:
        files[f"handler/grpc/{name.lower()}_server.go"] = None
    return detect_features(MemorySnapshot(files), rules=default_layer_rules(""))


def _texts(result: MergeResult) -> tuple[str, str]:
    container, entrypoint = result.container, result.entrypoint
    assert isinstance(container, ContainerModel)
    assert isinstance(entrypoint, EntrypointModel)
    return container.render(), entrypoint.render()


# ---------------------------------------------------------------------------
# Fresh project
# ---------------------------------------------------------------------------


class TestFreshProject:
    def test_synthesizes_both_files(self) -> None:
        result = merge(_inventory("User", "Product"), None, None, module=MODULE)
        container, entrypoint = _texts(result)
        assert f'\t"{MODULE}/internal/usecase"' in container
        assert "\tuserRepo repository.UserRepository\n" in container
        assert "\tproductHandler := container.ProductHandler()\n" in entrypoint

    def test_state_path(self) -> None:
        result = merge(_inventory("User"), None, None, module=MODULE)
        outcome = result.report.get("user")
        assert outcome is not None
        assert outcome.path == FRESH_PATH
        assert outcome.bound_now and outcome.registered_now
        assert outcome.integrated

    def test_alphabetical_by_default(self) -> None:
        result = merge(_inventory("User", "Product"), None, None, module=MODULE)
        assert [o.feature for o in result.report.outcomes] == ["Product", "User"]
        assert isinstance(result.container, ContainerModel)
        assert result.container.features() == ["Product", "User"]

    def test_explicit_order_is_kept(self) -> None:
        result = merge(_inventory("User", "Product"), None, None, order=["User", "Product"], module=MODULE)
        assert isinstance(result.entrypoint, EntrypointModel)
        assert result.entrypoint.features() == ["User", "Product"]

    def test_duplicate_names_in_order(self) -> None:
        result = merge(_inventory("User"), None, None, order=["User", "user"], module=MODULE)
        assert len(result.report.outcomes) == 1

    def test_database_option(self) -> None:
        result = merge(_inventory("User"), None, None, database="mysql", module=MODULE)
        container, _ = _texts(result)
        assert "repository.NewMySQLUserRepository(c.db)" in container


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


class TestIdempotence:
    def test_merging_twice_changes_nothing(self) -> None:
        inventory = _inventory("User", "Product")
        container, entrypoint = _texts(merge(inventory, None, None, module=MODULE))

        again = merge(inventory, parse_container(container), parse_entrypoint(entrypoint), module=MODULE)
        assert _texts(again) == (container, entrypoint)
        assert all(o.state is FeatureState.ALREADY_INTEGRATED for o in again.report.outcomes)
        assert not any(o.changed for o in again.report.outcomes)

    def test_existing_feature_is_not_duplicated(self, container_with_user: str, main_with_user: str) -> None:
        result = merge(
            _inventory("User", "Product"),
            parse_container(container_with_user),
            parse_entrypoint(main_with_user),
            module=MODULE,
        )
        container, entrypoint = _texts(result)
        assert container.count("\tuserRepo repository.UserRepository\n") == 1
        assert entrypoint.count("// User routes") == 1
        assert entrypoint.count('"/api/v1/users"') == 2
        assert "// Product routes" in entrypoint

        user = result.report.get("User")
        product = result.report.get("Product")
        assert user is not None and product is not None
        assert user.state is FeatureState.ALREADY_INTEGRATED
        assert product.path == FRESH_PATH

    def test_bound_but_not_routed(self, container_with_user: str) -> None:
        result = merge(_inventory("User"), parse_container(container_with_user), None, module=MODULE)
        outcome = result.report.get("User")
        assert outcome is not None
        assert outcome.path == [
            FeatureState.DETECTED,
            FeatureState.BOUND,
            FeatureState.NEEDS_ROUTE_REGISTRATION,
            FeatureState.REGISTERED,
        ]
        assert not outcome.bound_now
        assert outcome.registered_now
        container, _ = _texts(result)
        assert container == container_with_user


# ---------------------------------------------------------------------------
# Failures and partial results
# ---------------------------------------------------------------------------


class TestFailures:
    def test_incomplete_feature_fails_alone(self) -> None:
        result = merge(_inventory("User", domain_only=("Invoice",)), None, None, module=MODULE)
        invoice = result.report.get("Invoice")
        assert invoice is not None
        assert invoice.state is FeatureState.FAILED
        assert isinstance(invoice.error, IntegrationError)
        assert "handler" in str(invoice.error)
        assert [o.feature for o in result.report.integrated] == ["User"]
        assert result.report.ok
        container, _ = _texts(result)
        assert "Invoice" not in container

    def test_requested_feature_not_detected(self) -> None:
        result = merge(_inventory("User"), None, None, order=["Ghost", "User"], module=MODULE)
        assert [o.feature for o in result.report.outcomes] == ["Ghost", "User"]
        ghost = result.report.get("Ghost")
        assert ghost is not None
        assert ghost.state is FeatureState.FAILED
        assert ghost.error is not None and ghost.error.token == "Ghost"

    def test_nothing_integrated_is_not_ok(self) -> None:
        result = merge(_inventory(domain_only=("Invoice",)), None, None, module=MODULE)
        assert result.report.failed
        assert not result.report.ok

    def test_empty_inventory_is_ok(self) -> None:
        result = merge(ProjectInventory(), None, None, module=MODULE)
        assert result.report.outcomes == []
        assert result.report.ok

    def test_unrecognized_entrypoint_is_left_alone(self, main_manual: str) -> None:
        unrecognized = UnrecognizedFile("main.go", main_manual, SharedFileUnrecognized("no container"))
        result = merge(_inventory("User"), None, unrecognized, module=MODULE)
        assert result.entrypoint is unrecognized

        outcome = result.report.get("User")
        assert outcome is not None
        assert outcome.path[-2:] == [FeatureState.NEEDS_ROUTE_REGISTRATION, FeatureState.PARTIAL]
        assert isinstance(outcome.error, PartialIntegration)
        assert outcome.bound_now and not outcome.registered_now
        assert not outcome.integrated
        assert result.report.partial == [outcome]
        assert not result.report.ok

    def test_unrecognized_container(self, main_with_user: str) -> None:
        text = (
            "package di\n\n// hand written\n"
            "type Container struct {\n\tusers repository.UserRepository\n}\n"
        )
        unrecognized = UnrecognizedFile("internal/di/container.go", text, SharedFileUnrecognized("x"))
        entrypoint = parse_entrypoint(main_with_user)
        result = merge(_inventory("User", "Product"), unrecognized, entrypoint, module=MODULE)
        assert result.container is unrecognized

        user = result.report.get("User")
        product = result.report.get("Product")
        assert user is not None and product is not None
        assert user.state is FeatureState.ALREADY_INTEGRATED
        assert product.state is FeatureState.PARTIAL
        assert not product.changed
        assert isinstance(result.entrypoint, EntrypointModel)
        assert result.entrypoint.render() == main_with_user
        assert result.report.ok


class TestWithoutHttpHandler:
    def test_bound_without_routes(self) -> None:
        result = merge(_inventory(grpc_only=("Report",)), None, None, module=MODULE)
        outcome = result.report.get("Report")
        assert outcome is not None
        assert outcome.state is FeatureState.BOUND
        assert outcome.route is None
        assert not outcome.registered_now
        container, entrypoint = _texts(result)
        assert "\treportRepo repository.ReportRepository\n" in container
        assert "reportHandler" not in container
        assert "Report routes" not in entrypoint


class TestWithdraw:
    def test_withdraw_removes_added_blocks(self, main_with_user: str) -> None:
        result = merge(_inventory("User", "Product"), None, parse_entrypoint(main_with_user), module=MODULE)
        entrypoint = result.entrypoint
        assert isinstance(entrypoint, EntrypointModel)
        restored = withdraw(entrypoint, result.report.outcomes)
        assert restored.render() == main_with_user
